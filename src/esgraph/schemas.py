from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


class Serializable:
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class PackageJson(Serializable):
    path: str
    href: str
    name: str | None = None
    version: str | None = None


@dataclass(slots=True)
class Module(Serializable):
    href: str
    pathname: str
    path: str
    package_json: PackageJson | None
    imported_by: list[str] = field(default_factory=list)
    source: str = ""


@dataclass(slots=True)
class ModuleGraph(Serializable):
    base_path: str
    entry_points: list[str]
    graph: dict[str, list[str]] = field(default_factory=dict)
    modules: dict[str, Module] = field(default_factory=dict)

    def get(self, path: str) -> list[Module]:
        module = self.modules.get(path)
        return [module] if module is not None else []

    def get_unique_modules(self) -> list[str]:
        return [module.path for module in self.modules.values()]

    def edge_count(self) -> int:
        return sum(len(deps) for deps in self.graph.values())
