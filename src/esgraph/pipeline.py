from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from esgraph.builder import create_module_graph
from esgraph.config import GraphConfig
from esgraph.plugins import Plugin
from esgraph.schemas import ModuleGraph
from esgraph.specifiers import NODE_BUILTIN_MODULES
from esgraph.utils import utc_now_iso, write_json

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BuildResult:
    graph: ModuleGraph
    output: Path


def run_build(
    config: GraphConfig,
    entry_points: list[str] | None = None,
    plugins: Iterable[Plugin] = (),
) -> BuildResult:
    entries = entry_points or config.entry_points
    if not entries:
        raise ValueError("no entry points given on the command line or in the config")

    graph = create_module_graph(
        entries,
        base_path=config.base_path,
        condition_names=config.export_conditions,
        builtin_modules=NODE_BUILTIN_MODULES | set(config.extra_builtins),
        ignore_external=config.ignore_external,
        plugins=plugins,
    )

    payload = graph.to_dict()
    payload["generated_at"] = utc_now_iso()
    write_json(config.output, payload)
    logger.info("wrote module graph to %s", config.output)

    return BuildResult(graph=graph, output=config.output)
