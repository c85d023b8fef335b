"""
Synnia - Command-line entry point.

Usage:
    synnia run PROJECT --node NODE_ID [--recipe ID] [--output PATH]
    synnia recipes [--recipes DIR]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from synnia.core.errors import ProjectFormatError
from synnia.core.execution import RecipeExecutionPipeline
from synnia.core.project import Project, load_project, save_project
from synnia.nodes import register_all_nodes
from synnia.providers import get_registry, register_builtin_providers
from synnia.recipes import get_recipe_registry, load_manifest_dir, register_builtin_recipes


logger = logging.getLogger("synnia")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="synnia", description="Graph asset authoring engine")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--recipes", type=Path, help="Extra directory of recipe manifests (*.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a recipe node and save the project")
    run.add_argument("project", type=Path, help="Project JSON file")
    run.add_argument("--node", required=True, help="Id of the recipe node to run")
    run.add_argument("--recipe", help="Recipe id, when the node does not name one")
    run.add_argument("--settings", type=Path, help="Provider settings JSON (default: ~/.config/synnia/providers.json)")
    run.add_argument("--output", type=Path, help="Where to save the result (default: overwrite PROJECT)")

    sub.add_parser("recipes", help="List registered recipes")
    return parser


def _setup(args: argparse.Namespace) -> None:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    register_all_nodes()
    register_builtin_recipes()
    if args.recipes:
        load_manifest_dir(args.recipes)


def _list_recipes() -> int:
    for category, recipes in sorted(get_recipe_registry().by_category().items()):
        print(f"{category}:")
        for recipe in recipes:
            print(f"  {recipe.id:<20} {recipe.name}")
    return 0


def _run(args: argparse.Namespace) -> int:
    providers = get_registry()
    register_builtin_providers(providers)
    providers.load_config(args.settings)

    try:
        project = load_project(args.project)
    except (FileNotFoundError, ProjectFormatError) as e:
        logger.error("%s", e)
        return 1

    engine = project.into_engine()
    # One-shot runs keep the final state
    pipeline = RecipeExecutionPipeline(engine, providers=providers, success_reset_delay=None)
    outcome = asyncio.run(pipeline.run(args.node, args.recipe))

    path = save_project(Project.from_engine(engine, base=project), args.output or args.project)
    if not outcome.ok:
        logger.error("Run failed: %s", outcome.error)
        return 1

    logger.info(
        "Saved %s (%d node(s) created%s)",
        path,
        len(outcome.created_node_ids),
        ", product updated" if outcome.updated_asset_id else "",
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the Synnia CLI.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = _build_parser().parse_args(argv)
    _setup(args)

    if args.command == "recipes":
        return _list_recipes()
    return _run(args)


if __name__ == "__main__":
    sys.exit(main())
