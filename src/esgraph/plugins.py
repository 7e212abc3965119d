"""Plugin registration and hook sequencing.

Hooks run synchronously in registration order. ``handle_import`` return values
are interpreted as one of three outcomes:

- a ``str`` rewrites the specifier for later plugins and for resolution
- ``False`` vetoes the import; no later plugin runs and no edge is recorded
- ``True`` or anything else passes the specifier through unchanged
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from esgraph.errors import HookError, PluginError

if TYPE_CHECKING:
    from esgraph.schemas import ModuleGraph

logger = logging.getLogger(__name__)

StartHook = Callable[[list[str], str], Any]
ResolveHook = Callable[[str, str], Any]
HandleImportHook = Callable[[str, str], Any]
AnalyzeHook = Callable[[str], Any]
EndHook = Callable[["ModuleGraph"], Any]


@dataclass(slots=True)
class Plugin:
    name: str | None = None
    start: StartHook | None = None
    resolve: ResolveHook | None = None
    handle_import: HandleImportHook | None = None
    analyze: AnalyzeHook | None = None
    end: EndHook | None = None


@dataclass(frozen=True, slots=True)
class Rewrite:
    specifier: str


@dataclass(frozen=True, slots=True)
class Veto:
    pass


@dataclass(frozen=True, slots=True)
class Continue:
    pass


VETO = Veto()
CONTINUE = Continue()

ImportOutcome = Rewrite | Veto | Continue


def interpret_import_result(value: Any) -> ImportOutcome:
    if isinstance(value, str):
        return Rewrite(value)
    if value is False:
        return VETO
    return CONTINUE


class PluginPipeline:
    def __init__(self, plugins: Iterable[Plugin] = ()) -> None:
        self.plugins: list[Plugin] = list(plugins)
        for index, plugin in enumerate(self.plugins):
            if not plugin.name:
                raise PluginError(f"plugin at position {index} must have a name")

    def _call(self, plugin: Plugin, hook: str, module_path: str | None, *args: Any) -> Any:
        func = getattr(plugin, hook)
        try:
            return func(*args)
        except Exception as exc:
            raise HookError(plugin.name or "", hook, module_path=module_path) from exc

    def start(self, entry_points: Sequence[str], base_path: str) -> None:
        for plugin in self.plugins:
            if plugin.start is not None:
                self._call(plugin, "start", None, list(entry_points), base_path)

    def analyze(self, module_path: str, source: str) -> None:
        for plugin in self.plugins:
            if plugin.analyze is not None:
                self._call(plugin, "analyze", module_path, source)

    def handle_import(self, importer: str, specifier: str) -> str | None:
        """Thread ``specifier`` through every ``handle_import`` hook.

        Returns the final specifier, or None when a plugin vetoed the import.
        """
        current = specifier
        for plugin in self.plugins:
            if plugin.handle_import is None:
                continue
            outcome = interpret_import_result(self._call(plugin, "handle_import", importer, importer, current))
            match outcome:
                case Rewrite(specifier=rewritten):
                    logger.debug("plugin %s rewrote %r to %r in %s", plugin.name, current, rewritten, importer)
                    current = rewritten
                case Veto():
                    logger.debug("plugin %s vetoed %r in %s", plugin.name, current, importer)
                    return None
                case Continue():
                    pass
        return current

    def resolve(self, importer: str, directory: str, specifier: str) -> str | None:
        """Return the first path a ``resolve`` hook supplies, or None to fall through."""
        for plugin in self.plugins:
            if plugin.resolve is None:
                continue
            result = self._call(plugin, "resolve", importer, directory, specifier)
            if isinstance(result, str) and result:
                logger.debug("plugin %s resolved %r to %s", plugin.name, specifier, result)
                return result
        return None

    def end(self, module_graph: ModuleGraph) -> None:
        for plugin in self.plugins:
            if plugin.end is not None:
                self._call(plugin, "end", None, module_graph)
