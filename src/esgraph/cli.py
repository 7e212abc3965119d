from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import typer

from esgraph.config import GraphConfig, ensure_config
from esgraph.errors import GraphError
from esgraph.pipeline import run_build

app = typer.Typer(help="esgraph: static ES module dependency graphs")


def _load_config(path: Path, repo: Path) -> GraphConfig:
    if not path.exists():
        ensure_config(path)
    return GraphConfig.from_path(path, root=repo)


@app.command()
def init(
    repo: Path = typer.Option(Path("."), help="Project root"),
    config: Path = typer.Option(Path(".esgraph/config.yaml"), help="Config path"),
    force: bool = typer.Option(False, help="Overwrite existing config"),
) -> None:
    repo = repo.resolve()
    config = (repo / config).resolve() if not config.is_absolute() else config
    ensure_config(config, force=force)
    typer.echo(f"[esgraph] initialized config at {config}")


@app.command()
def build(
    entry_points: list[str] = typer.Argument(None, help="Entry point specifiers (default: from config)"),
    repo: Path = typer.Option(Path("."), help="Project root"),
    config: Path = typer.Option(Path(".esgraph/config.yaml"), help="Config path"),
    output: Path | None = typer.Option(None, help="Graph JSON output path"),
    ignore_external: bool = typer.Option(False, "--ignore-external", help="Skip bare package imports"),
    condition: list[str] = typer.Option(None, help="Export condition, repeatable"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every resolved import"),
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    repo = repo.resolve()
    config_path = (repo / config).resolve() if not config.is_absolute() else config
    settings = _load_config(config_path, repo)
    if output is not None:
        settings = dataclasses.replace(settings, output=(repo / output).resolve() if not output.is_absolute() else output)
    if ignore_external:
        settings = dataclasses.replace(settings, ignore_external=True)
    if condition:
        settings = dataclasses.replace(settings, export_conditions=list(condition))

    try:
        result = run_build(settings, entry_points=list(entry_points or []))
    except (GraphError, ValueError) as exc:
        typer.echo(f"[esgraph] error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo("[esgraph] build complete")
    typer.echo(f"- entry points: {', '.join(result.graph.entry_points)}")
    typer.echo(f"- modules: {len(result.graph.modules)}")
    typer.echo(f"- edges: {result.graph.edge_count()}")
    typer.echo(f"- output: {result.output}")


if __name__ == "__main__":
    app()
