"""Command-line interface for notectx."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from notectx import __version__
from notectx.config import (
    ProjectConfig,
    find_project_root,
    load_config,
    save_config,
    set_config_value,
)
from notectx.exceptions import ConfigError, GraphLoadError
from notectx.ui.console import Console

console = Console()


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No notectx project found. Run 'notectx init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _load_project_config(path: str | None) -> tuple[Path | None, ProjectConfig]:
    """Config of the enclosing project, or defaults outside of one."""
    root = Path(path).resolve() if path else find_project_root()
    if root is None:
        return None, ProjectConfig()
    try:
        return root, load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)


def _resolve_export(export: str | None, root: Path | None, config: ProjectConfig) -> Path:
    if export:
        return Path(export)
    if config.export_path:
        candidate = Path(config.export_path)
        if not candidate.is_absolute() and root is not None:
            candidate = root / candidate
        return candidate
    console.error("No export file given and none configured (notectx config set export_path ...)")
    sys.exit(1)


def _load_graph(export_path: Path):
    """Build the note graph and its query layer from an export file."""
    from notectx.graph.builder import GraphBuilder
    from notectx.graph.query import GraphQuery

    builder = GraphBuilder()
    try:
        graph = builder.build_from_file(export_path)
    except GraphLoadError as e:
        console.error(str(e))
        sys.exit(1)
    return builder, GraphQuery(graph)


@click.group()
@click.version_option(version=__version__, prog_name="notectx")
@click.option("--verbose", "-v", is_flag=True, help="Log traversal and composition details.")
def main(verbose: bool):
    """notectx - budgeted context assembly for hierarchical note graphs."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--export", "export_path", default=None, help="Default note export file.")
@click.option("--graph-name", default=None, help="Graph name used for navigation links.")
def init(path: str | None, export_path: str | None, graph_name: str | None):
    """Create a .notectx configuration for a directory."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing notectx for: {root}")

    try:
        config = load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)
    config.name = root.name
    if export_path:
        config.export_path = export_path
    if graph_name:
        config.graph_name = graph_name

    save_config(root, config)
    console.success("Configuration saved")


@main.command()
@click.argument("export", required=False)
@click.option("--path", default=None, help="Path to the project root.")
def stats(export: str | None, path: str | None):
    """Show statistics for a note export."""
    root, config = _load_project_config(path)
    builder, _ = _load_graph(_resolve_export(export, root, config))
    console.show_stats(builder.get_stats())


@main.command()
@click.argument("export", required=False)
@click.option("--page", "-p", "pages", multiple=True, help="Anchor page title (repeatable).")
@click.option("--block", "-b", "blocks", multiple=True, help="Anchor block uid (repeatable).")
@click.option("--budget", type=int, default=None, help="Token cap for the composed context.")
@click.option("--provider", default=None, help="Model provider used to size the budget.")
@click.option("--model", default=None, help="Model name used to size the budget.")
@click.option("--depth", type=click.IntRange(min=0), default=None, help="Maximum traversal depth.")
@click.option(
    "--max-items", type=click.IntRange(min=0), default=None, help="Maximum number of context items."
)
@click.option("--items-only", is_flag=True, help="List the ranked items instead of composing.")
@click.option("--path", default=None, help="Path to the project root.")
def context(
    export: str | None,
    pages: tuple[str, ...],
    blocks: tuple[str, ...],
    budget: int | None,
    provider: str | None,
    model: str | None,
    depth: int | None,
    max_items: int | None,
    items_only: bool,
    path: str | None,
):
    """Assemble context for anchor pages and blocks.

    Examples:

        notectx context graph.json -p "Scaling"

        notectx context graph.json -p "Scaling" -b a1b2c3d4e --budget 2000

        notectx context graph.json -p "Scaling" --items-only --depth 2
    """
    from notectx.context.composer import compose_unified_context, effective_budget
    from notectx.context.models import TokenEstimator
    from notectx.context.traversal import ContextBuilder

    if not pages and not blocks:
        console.warning("No anchors given; use --page and/or --block.")

    root, config = _load_project_config(path)
    _, query = _load_graph(_resolve_export(export, root, config))

    try:
        traversal = config.traversal_options(max_depth=depth, max_items=max_items)
        options = config.composer_options(provider=provider, model=model, max_tokens=budget)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)

    items = asyncio.run(ContextBuilder(query, traversal).build_context(pages, blocks))

    if items_only:
        console.show_items(items)
        return

    text = compose_unified_context(items, options=options)
    console.show_context(text)
    console.info(
        f"{len(items)} item(s), ~{TokenEstimator.estimate(text):,} / "
        f"{effective_budget(options):,} tokens"
    )


@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage notectx configuration."""
    root = _get_project_root(path)
    try:
        config = load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(mode="json"), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: notectx config get <key>")
            sys.exit(1)
        data = config.model_dump(mode="json")
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}", markup=False)
    elif action == "set":
        if not key or value is None:
            console.error("Usage: notectx config set <key> <value>")
            sys.exit(1)
        try:
            parsed_value = json.loads(value)
        except json.JSONDecodeError:
            parsed_value = value
        try:
            config = set_config_value(config, key, parsed_value)
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ConfigError as e:
            console.error(str(e))
            sys.exit(1)
        save_config(root, config)
        console.success(f"Set {key} = {parsed_value}")


if __name__ == "__main__":
    main()
