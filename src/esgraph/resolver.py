"""Node-style module resolution.

Maps ``(directory, specifier)`` to a canonical file on disk together with the
``package.json`` that owns it. Supports relative and absolute paths with
extension and index probing, ``main``, ``exports`` (subpaths, patterns,
condition objects, fallback arrays), ``imports`` (``#`` specifiers),
package self-references and ``node_modules`` lookup.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse
from urllib.request import url2pathname

from esgraph.errors import ResolutionError
from esgraph.utils import read_json

DEFAULT_CONDITIONS = ("node", "import")
EXTENSIONS = (".js", ".mjs", ".cjs", ".json", ".jsx", ".ts", ".mts", ".cts", ".tsx")
MANIFEST_NAME = "package.json"


@dataclass(slots=True)
class PackageManifest:
    path: Path
    data: dict[str, Any]

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def name(self) -> str | None:
        value = self.data.get("name")
        return value if isinstance(value, str) else None

    @property
    def version(self) -> str | None:
        value = self.data.get("version")
        return value if isinstance(value, str) else None


@dataclass(slots=True)
class Resolution:
    path: Path
    package_json: PackageManifest | None


def _normalize(path: Path) -> Path:
    return Path(os.path.normpath(path))


def _is_path_like(specifier: str) -> bool:
    return (
        specifier in {".", ".."}
        or specifier.startswith(("./", "../", "/"))
        or os.path.isabs(specifier)
    )


def split_package_specifier(specifier: str) -> tuple[str, str]:
    """Split ``@scope/name/sub/path`` into ``("@scope/name", "./sub/path")``."""
    parts = specifier.split("/")
    if specifier.startswith("@"):
        if len(parts) < 2 or not parts[1]:
            return "", ""
        name = "/".join(parts[:2])
        rest = parts[2:]
    else:
        name = parts[0]
        rest = parts[1:]
    subpath = "./" + "/".join(rest) if rest else "."
    return name, subpath


def _match_mapping(mapping: dict[str, Any], key: str) -> tuple[Any, str | None] | None:
    """Find the mapping entry for ``key``, honouring ``*`` patterns and folder keys."""
    if key in mapping and "*" not in key:
        return mapping[key], None

    best: tuple[str, Any, str] | None = None
    for candidate, target in mapping.items():
        if candidate.count("*") == 1:
            prefix, suffix = candidate.split("*")
            if (
                key.startswith(prefix)
                and key.endswith(suffix)
                and len(key) >= len(prefix) + len(suffix)
            ):
                match = key[len(prefix) : len(key) - len(suffix)]
                if best is None or len(prefix) > len(best[0].split("*")[0]):
                    best = (candidate, target, match)
        elif candidate.endswith("/") and key.startswith(candidate):
            if best is None or len(candidate) > len(best[0].split("*")[0]):
                best = (candidate, target, key[len(candidate) :])

    if best is None:
        return None
    candidate, target, match = best
    if "*" in candidate:
        return target, match
    if isinstance(target, str):
        return target + match, None
    return target, None


class Resolver:
    def __init__(self, condition_names: Iterable[str] = DEFAULT_CONDITIONS, extensions: Iterable[str] = EXTENSIONS) -> None:
        self.condition_names = list(condition_names)
        self.extensions = tuple(extensions)
        self._conditions = {*self.condition_names, "default"}
        self._manifests: dict[Path, PackageManifest | None] = {}

    def resolve(self, directory: str | Path, specifier: str) -> Resolution:
        base = Path(directory)
        request = specifier
        if request.startswith("file://"):
            request = url2pathname(urlparse(request).path)

        if _is_path_like(request):
            path = self._resolve_path(base, request)
        elif request.startswith("#"):
            path = self._resolve_imports(base, request, specifier)
        else:
            path = self._resolve_package(base, request, specifier)

        if path is None:
            raise ResolutionError(specifier, str(base), "module not found")
        canonical = path.resolve()
        return Resolution(path=canonical, package_json=self.find_package_json(canonical))

    def find_package_json(self, path: str | Path) -> PackageManifest | None:
        """Return the nearest manifest at or above ``path``."""
        start = Path(path)
        if not start.is_dir():
            start = start.parent
        for directory in (start, *start.parents):
            manifest = self._load_manifest(directory)
            if manifest is not None:
                return manifest
        return None

    def _load_manifest(self, directory: Path) -> PackageManifest | None:
        if directory in self._manifests:
            return self._manifests[directory]
        manifest_path = directory / MANIFEST_NAME
        manifest: PackageManifest | None = None
        if manifest_path.is_file():
            try:
                data = read_json(manifest_path)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise ResolutionError(str(manifest_path), str(directory), f"invalid {MANIFEST_NAME}: {exc}") from exc
            if not isinstance(data, dict):
                raise ResolutionError(str(manifest_path), str(directory), f"invalid {MANIFEST_NAME}: not an object")
            manifest = PackageManifest(path=manifest_path, data=data)
        self._manifests[directory] = manifest
        return manifest

    def _resolve_path(self, base: Path, request: str) -> Path | None:
        target = _normalize(base / request)
        if request.endswith("/") or request in {".", ".."}:
            return self._resolve_directory(target)
        return self._resolve_file(target) or self._resolve_directory(target)

    def _resolve_file(self, target: Path) -> Path | None:
        if target.is_file():
            return target
        for ext in self.extensions:
            candidate = target.with_name(target.name + ext)
            if candidate.is_file():
                return candidate
        return None

    def _resolve_index(self, directory: Path) -> Path | None:
        for ext in self.extensions:
            candidate = directory / f"index{ext}"
            if candidate.is_file():
                return candidate
        return None

    def _resolve_directory(self, directory: Path) -> Path | None:
        if not directory.is_dir():
            return None
        manifest = self._load_manifest(directory)
        if manifest is not None:
            main = manifest.data.get("main")
            if isinstance(main, str) and main:
                target = _normalize(directory / main)
                found = self._resolve_file(target) or self._resolve_index(target)
                if found is not None:
                    return found
        return self._resolve_index(directory)

    def _resolve_target(self, target: Any, match: str | None) -> str | None:
        if isinstance(target, str):
            return target.replace("*", match) if match is not None else target
        if isinstance(target, list):
            for item in target:
                found = self._resolve_target(item, match)
                if found is not None:
                    return found
            return None
        if isinstance(target, dict):
            for condition, value in target.items():
                if condition in self._conditions:
                    found = self._resolve_target(value, match)
                    if found is not None:
                        return found
            return None
        return None

    def _resolve_exports(self, manifest: PackageManifest, subpath: str, specifier: str, base: Path) -> Path:
        exports = manifest.data["exports"]
        if not isinstance(exports, dict) or not any(key.startswith(".") for key in exports):
            exports = {".": exports}

        entry = _match_mapping(exports, subpath)
        if entry is None:
            raise ResolutionError(specifier, str(base), f"subpath '{subpath}' is not exported by {manifest.path}")
        target = self._resolve_target(*entry)
        if target is None:
            conditions = ", ".join(self.condition_names)
            raise ResolutionError(specifier, str(base), f"no export condition matched [{conditions}] in {manifest.path}")
        if not target.startswith("./"):
            raise ResolutionError(specifier, str(base), f"invalid export target '{target}' in {manifest.path}")

        path = _normalize(manifest.directory / target)
        if not path.is_file():
            raise ResolutionError(specifier, str(base), f"export target {path} does not exist")
        return path

    def _resolve_imports(self, base: Path, request: str, specifier: str) -> Path:
        manifest = self.find_package_json(base)
        imports = manifest.data.get("imports") if manifest is not None else None
        if manifest is None or not isinstance(imports, dict):
            raise ResolutionError(specifier, str(base), "no package imports are defined")

        entry = _match_mapping(imports, request)
        target = self._resolve_target(*entry) if entry is not None else None
        if target is None:
            raise ResolutionError(specifier, str(base), f"'{request}' is not defined in {manifest.path} imports")
        if target.startswith("./"):
            path = _normalize(manifest.directory / target)
            if not path.is_file():
                raise ResolutionError(specifier, str(base), f"import target {path} does not exist")
            return path
        return self._resolve_package(manifest.directory, target, specifier)

    def _resolve_package(self, base: Path, request: str, specifier: str) -> Path:
        name, subpath = split_package_specifier(request)
        if not name:
            raise ResolutionError(specifier, str(base), "invalid package specifier")

        own = self.find_package_json(base)
        if own is not None and own.name == name and "exports" in own.data:
            return self._resolve_exports(own, subpath, specifier, base)

        for directory in (base, *base.parents):
            if directory.name == "node_modules":
                continue
            package_dir = directory / "node_modules" / name
            if not package_dir.is_dir():
                continue
            manifest = self._load_manifest(package_dir)
            if manifest is not None and manifest.data.get("exports") is not None:
                return self._resolve_exports(manifest, subpath, specifier, base)
            if subpath == ".":
                found = self._resolve_directory(package_dir)
            else:
                target = _normalize(package_dir / subpath)
                found = self._resolve_file(target) or self._resolve_directory(target)
            if found is None:
                raise ResolutionError(specifier, str(base), f"no entry for '{subpath}' in {package_dir}")
            return found

        raise ResolutionError(specifier, str(base), "package not found in any node_modules directory")
