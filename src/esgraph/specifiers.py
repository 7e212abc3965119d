from __future__ import annotations

import re
from collections.abc import Collection

BARE_FIRST_CHAR_RE = re.compile(r"[@A-Za-z]")
# dynamic expressions the lexer could not reduce to one path, e.g. `./locales/${lang}.js`
TEMPLATE_INTERPOLATION_RE = re.compile(r"\$\{[^}]+\}")

NODE_PREFIX = "node:"
IMPORT_META = "import.meta"

NODE_BUILTIN_MODULES = frozenset(
    {
        "_http_agent",
        "_http_client",
        "_http_common",
        "_http_incoming",
        "_http_outgoing",
        "_http_server",
        "_stream_duplex",
        "_stream_passthrough",
        "_stream_readable",
        "_stream_transform",
        "_stream_wrap",
        "_stream_writable",
        "_tls_common",
        "_tls_wrap",
        "assert",
        "assert/strict",
        "async_hooks",
        "buffer",
        "child_process",
        "cluster",
        "console",
        "constants",
        "crypto",
        "dgram",
        "diagnostics_channel",
        "dns",
        "dns/promises",
        "domain",
        "events",
        "fs",
        "fs/promises",
        "http",
        "http2",
        "https",
        "inspector",
        "inspector/promises",
        "module",
        "net",
        "os",
        "path",
        "path/posix",
        "path/win32",
        "perf_hooks",
        "process",
        "punycode",
        "querystring",
        "readline",
        "readline/promises",
        "repl",
        "stream",
        "stream/consumers",
        "stream/promises",
        "stream/web",
        "string_decoder",
        "sys",
        "timers",
        "timers/promises",
        "tls",
        "trace_events",
        "tty",
        "url",
        "util",
        "util/types",
        "v8",
        "vm",
        "wasi",
        "worker_threads",
        "zlib",
    }
)


def is_scoped_package(specifier: str) -> bool:
    return specifier.startswith("@")


def is_bare_module_specifier(specifier: str) -> bool:
    """True for package-name imports like ``lodash`` or ``@org/pkg``.

    Quote characters are ignored so raw dynamic-import arguments such as
    ``'lodash'`` classify the same way as their unquoted form.
    """
    stripped = specifier.replace("'", "").replace('"', "").replace("`", "")
    if not stripped:
        return False
    return BARE_FIRST_CHAR_RE.match(stripped[0]) is not None


def is_templated_dynamic(specifier: str) -> bool:
    return TEMPLATE_INTERPOLATION_RE.search(specifier) is not None


def strip_node_prefix(specifier: str) -> str:
    if specifier.startswith(NODE_PREFIX):
        return specifier[len(NODE_PREFIX) :]
    return specifier


def is_builtin(specifier: str, builtin_modules: Collection[str]) -> bool:
    return strip_node_prefix(specifier) in builtin_modules


def skip_reason(specifier: str, builtin_modules: Collection[str], ignore_external: bool) -> str | None:
    """Return why an import should be dropped before resolution, or None to keep it."""
    if not specifier:
        return "empty"
    if specifier == IMPORT_META:
        return "import.meta"
    if is_builtin(specifier, builtin_modules):
        return "builtin"
    if ignore_external and is_bare_module_specifier(specifier):
        return "external"
    if is_templated_dynamic(specifier):
        return "templated"
    return None
