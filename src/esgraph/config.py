from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from esgraph.resolver import DEFAULT_CONDITIONS

DEFAULT_CONFIG = """base_path: "."
entry_points:
  - index.js
export_conditions:
  - node
  - import
ignore_external: false
extra_builtins: []
output: .esgraph/graph.json
"""

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES or not lowered:
            return False
        raise ValueError(f"expected a boolean, got {value!r}")
    return bool(value)


@dataclass(slots=True)
class GraphConfig:
    base_path: Path
    entry_points: list[str] = field(default_factory=list)
    export_conditions: list[str] = field(default_factory=lambda: list(DEFAULT_CONDITIONS))
    ignore_external: bool = False
    extra_builtins: list[str] = field(default_factory=list)
    output: Path = Path(".esgraph/graph.json")

    @classmethod
    def default(cls, root: Path | None = None) -> GraphConfig:
        data = yaml.safe_load(DEFAULT_CONFIG)
        return cls.from_dict(data, root=root)

    @classmethod
    def from_path(cls, path: Path, root: Path | None = None) -> GraphConfig:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return cls.from_dict(data, root=root or path.parent)

    @classmethod
    def from_dict(cls, data: dict[str, Any], root: Path | None = None) -> GraphConfig:
        root = (root or Path.cwd()).resolve()

        base_path = Path(data.get("base_path", "."))
        conditions = [str(item) for item in data.get("export_conditions", DEFAULT_CONDITIONS)]
        ignore_external = _as_bool(data.get("ignore_external", False))

        env_base_path = os.getenv("ESGRAPH_BASE_PATH", "").strip()
        env_conditions = os.getenv("ESGRAPH_EXPORT_CONDITIONS", "").strip()
        env_ignore_external = os.getenv("ESGRAPH_IGNORE_EXTERNAL", "").strip().lower()

        if env_base_path:
            base_path = Path(env_base_path)
        if env_conditions:
            conditions = [item.strip() for item in env_conditions.split(",") if item.strip()]
        if env_ignore_external in TRUE_VALUES:
            ignore_external = True
        elif env_ignore_external in FALSE_VALUES:
            ignore_external = False

        if not base_path.is_absolute():
            base_path = (root / base_path).resolve()
        output = Path(data.get("output", ".esgraph/graph.json"))
        if not output.is_absolute():
            output = (root / output).resolve()

        return cls(
            base_path=base_path,
            entry_points=[str(item) for item in data.get("entry_points", [])],
            export_conditions=conditions,
            ignore_external=ignore_external,
            extra_builtins=[str(item) for item in data.get("extra_builtins", [])],
            output=output,
        )


def ensure_config(path: Path, force: bool = False) -> None:
    if path.exists() and not force:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG, encoding="utf-8")
