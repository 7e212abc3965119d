from __future__ import annotations

from pathlib import Path

import pytest

import esgraph.builder
from esgraph.builder import create_module_graph
from esgraph.errors import LexError, ReadError, ResolutionError
from esgraph.plugins import Plugin

FIXTURE = Path(__file__).parent / "fixtures" / "sample_project"


def _write(root: Path, files: dict[str, str]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def test_sample_project_graph_edges_and_modules() -> None:
    graph = create_module_graph("index.js", base_path=FIXTURE)

    assert graph.entry_points == ["index.js"]
    assert graph.graph["index.js"] == [
        "src/a.js",
        "src/utils.js",
        "node_modules/greeter/lib/main.js",
        "node_modules/@scope/pkg/feature.mjs",
        "src/b.js",
    ]
    assert graph.graph["src/a.js"] == ["src/b.js", "src/utils.js"]
    assert graph.graph["src/b.js"] == ["src/a.js", "src/lazy.js"]
    assert graph.graph["src/lazy.js"] == []
    assert set(graph.graph) == set(graph.modules)
    assert len(graph.modules) == 7


def test_sample_project_module_records() -> None:
    graph = create_module_graph(["./index.js"], base_path=FIXTURE)
    root = FIXTURE.resolve()

    entry = graph.modules["index.js"]
    assert entry.pathname == str(root / "index.js")
    assert entry.href == (root / "index.js").as_uri()
    assert entry.imported_by == []
    assert entry.package_json is not None
    assert entry.package_json.name == "sample-project"
    assert entry.package_json.version == "1.0.0"
    assert entry.package_json.path == str(root / "package.json")
    assert entry.package_json.href == (root / "package.json").as_uri()

    assert graph.modules["src/a.js"].imported_by == ["index.js", "src/b.js"]
    assert graph.modules["src/utils.js"].imported_by == ["index.js", "src/a.js"]

    greeter = graph.modules["node_modules/greeter/lib/main.js"]
    assert greeter.package_json is not None
    assert (greeter.package_json.name, greeter.package_json.version) == ("greeter", "2.1.0")

    feature = graph.modules["node_modules/@scope/pkg/feature.mjs"]
    assert feature.package_json is not None
    assert feature.package_json.name == "@scope/pkg"


def test_final_source_matches_each_module_file() -> None:
    graph = create_module_graph("index.js", base_path=FIXTURE)

    for path, module in graph.modules.items():
        assert module.source == (FIXTURE / path).read_text(encoding="utf-8")


def test_ignore_external_skips_packages_but_keeps_subpath_imports() -> None:
    graph = create_module_graph("index.js", base_path=FIXTURE, ignore_external=True)

    assert graph.graph["index.js"] == ["src/a.js", "src/utils.js", "src/b.js"]
    assert not any(path.startswith("node_modules/") for path in graph.modules)


def test_condition_names_are_forwarded_to_resolution() -> None:
    graph = create_module_graph("index.js", base_path=FIXTURE, condition_names=["require"])

    assert "node_modules/@scope/pkg/feature.cjs" in graph.modules
    assert "node_modules/@scope/pkg/feature.mjs" not in graph.modules


def test_graph_is_deterministic() -> None:
    first = create_module_graph("index.js", base_path=FIXTURE)
    second = create_module_graph("index.js", base_path=FIXTURE)

    assert first.to_dict() == second.to_dict()
    assert list(first.graph) == list(second.graph)
    assert list(first.modules) == list(second.modules)


def test_scenario_relative_import_kept_and_external_ignored(tmp_path: Path) -> None:
    _write(tmp_path, {"index.js": 'import "./a.js";\nimport "pkg";\n', "a.js": "export default 1;\n"})

    graph = create_module_graph(["index.js"], base_path=tmp_path, ignore_external=True)

    assert graph.graph == {"index.js": ["a.js"], "a.js": []}
    assert sorted(graph.modules) == ["a.js", "index.js"]
    assert graph.modules["a.js"].package_json is None


def test_mutual_imports_terminate(tmp_path: Path) -> None:
    _write(tmp_path, {"a.js": 'import "./b.js";\n', "b.js": 'import "./a.js";\n'})

    graph = create_module_graph(["a.js"], base_path=tmp_path)

    assert graph.graph == {"a.js": ["b.js"], "b.js": ["a.js"]}
    assert graph.modules["b.js"].imported_by == ["a.js"]
    assert graph.modules["a.js"].imported_by == ["b.js"]


def test_each_module_is_lexed_once(tmp_path: Path, monkeypatch) -> None:
    _write(
        tmp_path,
        {
            "index.js": 'import "./a.js";\nimport "./b.js";\n',
            "a.js": 'import "./c.js";\n',
            "b.js": 'import "./c.js";\nimport "./a.js";\n',
            "c.js": 'import "./index.js";\n',
        },
    )
    lexed: list[str] = []
    real_lex = esgraph.builder.lex

    def counting_lex(source: str, filename: str = ""):
        lexed.append(source)
        return real_lex(source, filename)

    monkeypatch.setattr(esgraph.builder, "lex", counting_lex)

    graph = create_module_graph(["index.js", "./index.js"], base_path=tmp_path)

    assert len(lexed) == 4
    assert graph.entry_points == ["index.js", "index.js"]
    assert sorted(graph.graph) == ["a.js", "b.js", "c.js", "index.js"]
    assert graph.modules["c.js"].imported_by == ["b.js", "a.js"]


def test_repeated_imports_produce_repeated_edges(tmp_path: Path) -> None:
    _write(
        tmp_path,
        {
            "index.js": 'import { x } from "./a.js";\nexport { y } from "./a.js";\nimport "./a";\n',
            "a.js": "export const x = 1;\nexport const y = 2;\n",
        },
    )

    graph = create_module_graph("index.js", base_path=tmp_path)

    assert graph.graph["index.js"] == ["a.js", "a.js", "a.js"]
    assert graph.modules["a.js"].imported_by == ["index.js"]


def test_filtered_specifiers_produce_no_edges(tmp_path: Path) -> None:
    _write(
        tmp_path,
        {
            "index.js": (
                'import fs from "node:fs";\n'
                'import crypto from "crypto";\n'
                'import custom from "custom-builtin";\n'
                "const meta = import.meta;\n"
                "const name = 'x';\n"
                "await import(`./pages/${name}.js`);\n"
                "await import(name);\n"
                'import "./kept.js";\n'
            ),
            "kept.js": "",
        },
    )

    graph = create_module_graph(
        "index.js",
        base_path=tmp_path,
        builtin_modules={"fs", "crypto", "custom-builtin"},
    )

    assert graph.graph == {"index.js": ["kept.js"], "kept.js": []}
    assert sorted(graph.modules) == ["index.js", "kept.js"]


def test_get_and_unique_modules() -> None:
    graph = create_module_graph("index.js", base_path=FIXTURE, ignore_external=True)

    assert graph.get_unique_modules() == ["index.js", "src/a.js", "src/utils.js", "src/b.js", "src/lazy.js"]
    assert [module.path for module in graph.get("src/a.js")] == ["src/a.js"]
    assert graph.get("missing.js") == []


def test_missing_dependency_is_fatal(tmp_path: Path) -> None:
    _write(tmp_path, {"index.js": 'import "./a.js";\n', "a.js": 'import "./gone.js";\n'})

    with pytest.raises(ResolutionError) as excinfo:
        create_module_graph("index.js", base_path=tmp_path)

    assert excinfo.value.specifier == "./gone.js"
    assert excinfo.value.module_path == "a.js"
    assert "a.js" in str(excinfo.value)


def test_missing_entry_point_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(ResolutionError):
        create_module_graph("nope.js", base_path=tmp_path)


def test_unreadable_source_is_fatal(tmp_path: Path) -> None:
    _write(tmp_path, {"index.js": 'import "./binary.js";\n'})
    (tmp_path / "binary.js").write_bytes(b"\xff\xfe\x00\x81")

    with pytest.raises(ReadError) as excinfo:
        create_module_graph("index.js", base_path=tmp_path)

    assert excinfo.value.module_path == "binary.js"


def test_unlexable_source_is_fatal(tmp_path: Path) -> None:
    _write(tmp_path, {"index.js": 'import "./broken.js";\n', "broken.js": "import { from;\n"})

    with pytest.raises(LexError) as excinfo:
        create_module_graph("index.js", base_path=tmp_path)

    assert excinfo.value.module_path == "broken.js"


def test_default_base_path_is_cwd(tmp_path: Path, monkeypatch) -> None:
    _write(tmp_path, {"main.js": 'import "./dep.js";\n', "dep.js": ""})
    monkeypatch.chdir(tmp_path)

    graph = create_module_graph("main.js")

    assert graph.base_path == str(tmp_path.resolve())
    assert graph.graph == {"main.js": ["dep.js"], "dep.js": []}


def test_relative_base_path_is_stored_absolute(tmp_path: Path, monkeypatch) -> None:
    _write(tmp_path, {"index.js": 'import "./dep.js";\n', "dep.js": ""})
    monkeypatch.chdir(tmp_path)
    started: list[str] = []

    plugin = Plugin(name="observer", start=lambda entries, base: started.append(base))
    graph = create_module_graph("index.js", base_path=".", plugins=[plugin])

    assert graph.base_path == str(tmp_path.resolve())
    assert started == [str(tmp_path.resolve())]
    assert graph.to_dict()["base_path"] == str(tmp_path.resolve())


def test_typescript_modules_are_traversed(tmp_path: Path) -> None:
    _write(
        tmp_path,
        {
            "index.js": 'import { x } from "./util";\n',
            "util.ts": 'import type { Shape } from "./shape";\nexport const x: number = 1;\n',
            "shape.ts": "export interface Shape { size: number }\n",
        },
    )

    graph = create_module_graph("index.js", base_path=tmp_path)

    assert graph.graph["index.js"] == ["util.ts"]
    assert graph.graph["util.ts"] == ["shape.ts"]
    assert graph.graph["shape.ts"] == []
