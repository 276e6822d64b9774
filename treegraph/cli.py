"""Typer-based CLI for inspecting passive trees and trying optimizations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__, config, config_manager
from .analyzer import TreeAnalyzer
from .cache import VersionedCache
from .errors import TreeGraphError
from .models import AllocatedSet, OptimizationConstraints, TreeGraph
from .optimizer import TreeOptimizer
from .pathing import PathEngine
from .scoring import OptimizationGoal, goal_description
from .sources import DirectoryTreeSource

app = typer.Typer(
    help="Passive skill tree analysis, path finding and optimization.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

TREE_DIR_OPTION = typer.Option(
    None, "--tree-dir", help="Directory holding <version>/tree.lua (default: ~/.treegraph/tree_data).",
)
TREE_VERSION_OPTION = typer.Option(None, "--tree-version", "-t", help="Tree version, e.g. 3_26.")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"treegraph v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log engine activity to stderr."),
):
    """treegraph: parse passive tree data and reason about allocations."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _parse_allocation(nodes: str, level: int = 1, tree_version: Optional[str] = None) -> AllocatedSet:
    try:
        return AllocatedSet.from_string(nodes, level=level, tree_version=tree_version)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _source(tree_dir: Optional[Path]) -> DirectoryTreeSource:
    if tree_dir is None:
        config.ensure_base_dirs()
        tree_dir = config.TREE_DATA_DIR
    return DirectoryTreeSource(tree_dir)


def _load_graph(tree_dir: Optional[Path], tree_version: Optional[str]) -> Tuple[TreeGraph, str]:
    """Resolve tree data for *tree_version*; returns the graph and the requested version."""
    resolved = VersionedCache(_source(tree_dir)).resolve(tree_version)
    if resolved.is_fallback:
        console.print(
            f"[yellow]Tree data for {resolved.requested_version} not found; "
            f"using {resolved.actual_version}[/yellow]"
        )
    return resolved.graph, resolved.requested_version


def _fail(exc: TreeGraphError):
    console.print(f"[red]❌ {exc}[/red]", highlight=False)
    raise typer.Exit(code=1)


@app.command("analyze")
def analyze(
    nodes: str = typer.Argument(..., help="Comma-separated allocated node ids."),
    level: int = typer.Option(90, "--level", "-l", help="Character level."),
    tree_version: Optional[str] = TREE_VERSION_OPTION,
    tree_dir: Optional[Path] = TREE_DIR_OPTION,
):
    """Summarize an allocation: points, categories, archetype and suggestions."""
    allocation = _parse_allocation(nodes, level=level, tree_version=tree_version)
    try:
        graph, requested = _load_graph(tree_dir, tree_version)
        result = TreeAnalyzer(graph).analyze(allocation, requested_version=requested)
    except TreeGraphError as exc:
        _fail(exc)

    summary = Table(show_header=False, box=None, padding=(0, 2), title="🌳 Passive Tree", title_style="bold cyan")
    summary.add_row("Tree version", result.tree_version)
    summary.add_row("Points", f"{result.total_points} / {result.available_points}")
    summary.add_row("Keystones", str(len(result.keystones)))
    summary.add_row("Notables", str(len(result.notables)))
    summary.add_row("Jewel sockets", str(len(result.jewels)))
    summary.add_row("Normal", str(len(result.normal_nodes)))
    summary.add_row("Archetype", f"{result.archetype} ({result.archetype_confidence})")
    summary.add_row("Pathing", result.pathing_efficiency)
    console.print(summary)

    if result.keystones:
        console.print("Keystones: " + ", ".join(k.display_name for k in result.keystones), highlight=False)

    for suggestion in result.optimization_suggestions:
        if suggestion.kind == "context":
            continue
        console.print(f"  [{suggestion.priority}] {suggestion.title}", highlight=False, markup=False)


@app.command("nearby")
def nearby(
    nodes: str = typer.Argument(..., help="Comma-separated allocated node ids."),
    radius: int = typer.Option(config.SEARCH_RADIUS, "--radius", "-r", help="Maximum distance in points."),
    stat_filter: Optional[str] = typer.Option(None, "--filter", "-f", help="Keep nodes whose name or stats mention this."),
    tree_version: Optional[str] = TREE_VERSION_OPTION,
    tree_dir: Optional[Path] = TREE_DIR_OPTION,
):
    """List unallocated notables and keystones close to the allocation."""
    allocation = _parse_allocation(nodes)
    try:
        graph, _ = _load_graph(tree_dir, tree_version)
    except TreeGraphError as exc:
        _fail(exc)

    results = PathEngine(graph).find_nearby_nodes(allocation, radius, stat_filter)
    if not results:
        console.print(f"No notables or keystones within {radius} points.")
        return

    table = Table(title=f"Within {radius} points", title_style="bold cyan")
    table.add_column("Id", style="dim")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Distance", justify="right")
    for item in results:
        table.add_row(item.node_id, item.node.display_name, item.node.category.value, f"{item.distance:g}")
    console.print(table)


@app.command("path")
def path(
    nodes: str = typer.Argument(..., help="Comma-separated allocated node ids."),
    target: str = typer.Argument(..., help="Node id to reach."),
    tree_version: Optional[str] = TREE_VERSION_OPTION,
    tree_dir: Optional[Path] = TREE_DIR_OPTION,
):
    """Show the cheapest nodes to allocate to reach TARGET."""
    allocation = _parse_allocation(nodes)
    try:
        graph, _ = _load_graph(tree_dir, tree_version)
        paths = PathEngine(graph).find_shortest_paths(allocation, target)
    except TreeGraphError as exc:
        _fail(exc)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    if not paths:
        console.print(f"No path to {target} (already allocated, unknown or unreachable).")
        return
    best = paths[0]
    names = [graph.nodes[n].display_name for n in best.nodes]
    console.print(f"Cost: {best.cost:g}", highlight=False)
    console.print("Path: " + " → ".join(f"{n} ({name})" for n, name in zip(best.nodes, names)), highlight=False)


@app.command("optimize")
def optimize(
    nodes: str = typer.Argument(..., help="Comma-separated allocated node ids."),
    goal: str = typer.Option("dps", "--goal", "-g", help="Goal, e.g. dps, life, es, ehp, balanced, league start."),
    max_iterations: int = typer.Option(config.MAX_ITERATIONS, "--max-iterations", help="Search iteration budget."),
    max_points: int = typer.Option(0, "--max-points", help="Extra points the search may spend."),
    min_life: Optional[float] = typer.Option(None, "--min-life"),
    min_es: Optional[float] = typer.Option(None, "--min-es"),
    min_ehp: Optional[float] = typer.Option(None, "--min-ehp"),
    protect: List[str] = typer.Option([], "--protect", "-p", help="Node id that must not be removed (repeatable)."),
    tree_version: Optional[str] = TREE_VERSION_OPTION,
    tree_dir: Optional[Path] = TREE_DIR_OPTION,
):
    """Search for node swaps that improve GOAL without breaking constraints."""
    allocation = _parse_allocation(nodes)
    try:
        constraints = OptimizationConstraints(
            min_life=min_life, min_es=min_es, min_ehp=min_ehp, protected_nodes=frozenset(protect),
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        graph, _ = _load_graph(tree_dir, tree_version)
    except TreeGraphError as exc:
        _fail(exc)

    result = TreeOptimizer(graph).optimize(
        allocation, goal, constraints, max_iterations=max_iterations, max_points=max_points,
    )

    console.print(Panel(f"🎯 {result.goal_description}", style="bold cyan", width=70))
    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    table.add_row("Score", f"{result.starting_score:,.1f}", f"{result.final_score:,.1f}")
    table.add_row("Life", f"{result.starting_stats.life:,.0f}", f"{result.final_stats.life:,.0f}")
    table.add_row("Energy Shield", f"{result.starting_stats.energy_shield:,.0f}", f"{result.final_stats.energy_shield:,.0f}")
    table.add_row("DPS", f"{result.starting_stats.dps:,.0f}", f"{result.final_stats.dps:,.0f}")
    console.print(table)

    console.print(f"Iterations: {result.iterations}", highlight=False)
    console.print(f"Added: {', '.join(result.nodes_added) or 'none'}", highlight=False)
    console.print(f"Removed: {', '.join(result.nodes_removed) or 'none'}", highlight=False)
    console.print(f"Constraints met: {'yes' if result.constraints_met else 'no'}", highlight=False)
    for warning in result.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]", highlight=False)


@app.command("goals")
def goals():
    """List optimization goals."""
    for goal in OptimizationGoal:
        typer.echo(f"{goal.value:<15} {goal_description(goal)}")


@app.command("versions")
def versions(tree_dir: Optional[Path] = TREE_DIR_OPTION):
    """List tree versions available on disk."""
    source = _source(tree_dir)
    found = source.available_versions()
    if not found:
        typer.echo(f"No tree data found in {source.root}.")
        return
    for name in found:
        marker = "*" if name == config.DEFAULT_TREE_VERSION else " "
        typer.echo(f"{marker} {name}")


@app.command("show-config")
def show_config():
    """Show engine settings and where they come from."""
    settings = config_manager.load_engine_config()
    table = Table(show_header=False, box=None, padding=(0, 2), title="⚙ Engine", title_style="bold cyan")
    for key in config_manager.ENGINE_KEYS:
        table.add_row(key, str(settings.get(key)))
    table.add_row("config", str(config_manager.CONFIG_FILE))
    console.print(table)


@app.command("set-config")
def set_config(
    key: str = typer.Argument(..., help="Setting name (see show-config)."),
    value: str = typer.Argument(..., help="New value."),
):
    """Save one engine setting to the [engine] table of config.toml."""
    try:
        saved = config_manager.save_engine_config(**{key: value})
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if not saved:
        typer.echo(f"Could not write {config_manager.CONFIG_FILE}")
        raise typer.Exit(code=1)
    typer.echo(f"Set {key} = {value}")


@app.command("reset-config")
def reset_config():
    """Remove saved engine settings, restoring defaults."""
    if config_manager.clear_engine_config():
        typer.echo("Engine settings reset to defaults.")
    else:
        raise typer.Exit(code=1)
