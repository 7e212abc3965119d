from __future__ import annotations

import logging
import os
from collections.abc import Collection, Iterable, Sequence
from pathlib import Path, PurePath

from esgraph.errors import LexError, ReadError, ResolutionError
from esgraph.lexer import lex
from esgraph.plugins import Plugin, PluginPipeline
from esgraph.resolver import DEFAULT_CONDITIONS, PackageManifest, Resolution, Resolver
from esgraph.schemas import Module, ModuleGraph, PackageJson
from esgraph.specifiers import NODE_BUILTIN_MODULES, skip_reason

logger = logging.getLogger(__name__)


def _package_json(manifest: PackageManifest | None) -> PackageJson | None:
    if manifest is None:
        return None
    return PackageJson(
        path=str(manifest.path),
        href=manifest.path.as_uri(),
        name=manifest.name,
        version=manifest.version,
    )


def _relative(path: Path, root: Path) -> str:
    return PurePath(os.path.relpath(path, root)).as_posix()


class GraphBuilder:
    """Depth-first worklist traversal that populates a ModuleGraph.

    A module path becomes a key of ``graph`` the first time it is popped from
    the worklist; that key is the visited marker, so every unique path is read
    and lexed at most once however many importers reach it.
    """

    def __init__(
        self,
        base_path: str,
        condition_names: Sequence[str] = DEFAULT_CONDITIONS,
        builtin_modules: Collection[str] = NODE_BUILTIN_MODULES,
        ignore_external: bool = False,
        plugins: Iterable[Plugin] = (),
    ) -> None:
        self.root = Path(base_path).resolve()
        self.base_path = str(self.root)
        self.builtin_modules = builtin_modules
        self.ignore_external = ignore_external
        self.resolver = Resolver(condition_names)
        self.pipeline = PluginPipeline(plugins)

    def _resolve(self, importer: str | None, directory: Path, specifier: str) -> Resolution:
        supplied = None
        if importer is not None:
            supplied = self.pipeline.resolve(importer, str(directory), specifier)
        try:
            if supplied is None:
                return self.resolver.resolve(directory, specifier)
            path = (directory / supplied).resolve()
            if not path.is_file():
                raise ResolutionError(specifier, str(directory), f"plugin supplied missing file {path}")
            return Resolution(path=path, package_json=self.resolver.find_package_json(path))
        except ResolutionError as exc:
            if exc.module_path is None:
                exc.module_path = importer
            raise

    def _read(self, dep: str) -> str:
        try:
            return (self.root / dep).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ReadError(f"cannot read {self.root / dep}: {exc}", module_path=dep) from exc

    def _seed(self, module_graph: ModuleGraph, entry_points: Sequence[str]) -> list[str]:
        worklist: list[str] = []
        for specifier in entry_points:
            # "index.js" names a file under the base path before it names a package
            request = specifier
            if not specifier.startswith((".", "/")) and (self.root / specifier).exists():
                request = f"./{specifier}"
            resolution = self._resolve(None, self.root, request)
            module_path = _relative(resolution.path, self.root)
            if module_path not in module_graph.modules:
                module_graph.modules[module_path] = Module(
                    href=resolution.path.as_uri(),
                    pathname=str(resolution.path),
                    path=module_path,
                    package_json=_package_json(resolution.package_json),
                )
            worklist.append(module_path)
        return worklist

    def build(self, entry_points: Sequence[str]) -> ModuleGraph:
        module_graph = ModuleGraph(base_path=self.base_path, entry_points=list(entry_points))

        worklist = self._seed(module_graph, entry_points)
        module_graph.entry_points = list(worklist)
        self.pipeline.start(module_graph.entry_points, module_graph.base_path)

        while worklist:
            dep = worklist.pop()
            if dep in module_graph.graph:
                continue

            source = self._read(dep)
            module_graph.modules[dep].source = source
            edges = module_graph.graph.setdefault(dep, [])
            self.pipeline.analyze(dep, source)

            try:
                imports = lex(source, dep)
            except LexError as exc:
                exc.module_path = dep
                raise

            directory = (self.root / dep).parent
            for item in imports:
                importee = item.specifier
                reason = skip_reason(importee, self.builtin_modules, self.ignore_external)
                if reason is not None:
                    logger.debug("skipping %r in %s (%s)", importee, dep, reason)
                    continue

                rewritten = self.pipeline.handle_import(dep, importee)
                if rewritten is None:
                    continue

                resolution = self._resolve(dep, directory, rewritten)
                dependency = _relative(resolution.path, self.root)
                logger.debug("%s: %r -> %s", dep, rewritten, dependency)

                if dependency not in module_graph.graph:
                    worklist.append(dependency)

                module = module_graph.modules.get(dependency)
                if module is None:
                    module_graph.modules[dependency] = Module(
                        href=resolution.path.as_uri(),
                        pathname=str(resolution.path),
                        path=dependency,
                        package_json=_package_json(resolution.package_json),
                        imported_by=[dep],
                        source=source,
                    )
                elif dep not in module.imported_by:
                    module.imported_by.append(dep)

                edges.append(dependency)

        logger.info(
            "built module graph: %d modules, %d edges from %d entry points",
            len(module_graph.modules),
            module_graph.edge_count(),
            len(module_graph.entry_points),
        )
        self.pipeline.end(module_graph)
        return module_graph


def create_module_graph(
    entry_points: str | Sequence[str],
    base_path: str | os.PathLike[str] | None = None,
    condition_names: Sequence[str] = DEFAULT_CONDITIONS,
    builtin_modules: Collection[str] | None = None,
    ignore_external: bool = False,
    plugins: Iterable[Plugin] = (),
) -> ModuleGraph:
    """Build the static import graph reachable from ``entry_points``.

    Args:
        entry_points: One specifier or a sequence of them, resolved against
            ``base_path``.
        base_path: Root directory every module path is made relative to.
            Defaults to the current working directory.
        condition_names: Export conditions used when resolving package
            ``exports`` and ``imports``.
        builtin_modules: Built-in module names to skip, compared after
            stripping a ``node:`` prefix. Defaults to Node's built-ins.
        ignore_external: Skip every bare package specifier.
        plugins: Plugins whose hooks observe and rewrite the traversal.

    Raises:
        GraphError: Any resolution, read, lex or plugin failure. No partial
            graph is returned.
    """
    if isinstance(entry_points, str):
        entry_points = [entry_points]
    builder = GraphBuilder(
        base_path=os.fspath(base_path) if base_path is not None else os.getcwd(),
        condition_names=list(condition_names),
        builtin_modules=NODE_BUILTIN_MODULES if builtin_modules is None else builtin_modules,
        ignore_external=ignore_external,
        plugins=plugins,
    )
    return builder.build(entry_points)
