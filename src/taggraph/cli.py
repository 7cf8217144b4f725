"""CLI for inspecting relation graphs built from an entity snapshot file.

The snapshot is a JSON list of entities (or an object with an
"entities" list), e.g.:

    [{"id": "w1", "text": "color", "tags": [{"type": "custom:root", "value": "col"}]}]
"""

import json
import logging
from pathlib import Path

import click
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.table import Table

from .builder import BuilderConfig, GraphBuilder
from .graph import RelationGraph
from .layout import LayoutConfig, LayoutSimulator
from .models import Entity, RelationKind
from .service import LayoutLoop
from .tag_names import StaticTagNames

console = Console()

_entity_list = TypeAdapter(list[Entity])


def load_entities(path: Path) -> list[Entity]:
    """Read an entity snapshot file."""
    data = json.loads(path.read_text())
    if isinstance(data, dict):
        data = data.get("entities", [])
    return _entity_list.validate_python(data)


def _build(ctx: click.Context, snapshot: Path) -> RelationGraph:
    try:
        entities = load_entities(snapshot)
    except (json.JSONDecodeError, ValidationError) as e:
        raise click.ClickException(f"Invalid snapshot {snapshot}: {e}")
    builder = GraphBuilder(BuilderConfig(include_tag_nodes=ctx.obj["tag_nodes"]))
    return builder.build(entities)


def _require_node(graph: RelationGraph, node_id: str) -> None:
    if node_id not in graph:
        raise click.ClickException(f"Unknown node: {node_id}")


snapshot_argument = click.argument(
    "snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)


@click.group()
@click.option(
    "--log-level",
    envvar="TAGGRAPH_LOG_LEVEL",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
)
@click.option("--tag-nodes", is_flag=True, help="Add tag nodes and entity->tag edges")
@click.pass_context
def cli(ctx, log_level, tag_nodes):
    """taggraph - relation graph engine for tagged entities."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["tag_nodes"] = tag_nodes


@cli.command()
@snapshot_argument
@click.pass_context
def stats(ctx, snapshot):
    """Show node/edge counts and relation-kind histogram."""
    graph = _build(ctx, snapshot)
    st = graph.statistics

    console.print(f"[bold]Nodes:[/bold] {st.node_count}")
    console.print(f"[bold]Edges:[/bold] {st.edge_count}")
    console.print(f"[bold]Average degree:[/bold] {st.average_degree:.2f}")

    table = Table(title="Edges by kind")
    table.add_column("Kind", style="cyan")
    table.add_column("Count", justify="right")
    for kind in RelationKind:
        table.add_row(kind.value, str(st.edge_kind_distribution.get(kind, 0)))
    console.print(table)


@cli.command()
@snapshot_argument
@click.argument("node_id")
@click.option("--depth", "-d", default=1, show_default=True, help="Traversal depth")
@click.pass_context
def neighbors(ctx, snapshot, node_id, depth):
    """List nodes connected to NODE_ID."""
    graph = _build(ctx, snapshot)
    _require_node(graph, node_id)

    if depth == 1:
        nodes = sorted(graph.neighbors(node_id), key=lambda n: n.label)
    else:
        nodes = graph.connected_nodes(node_id, max_depth=depth)

    if not nodes:
        console.print("[dim]No connected nodes.[/dim]")
        return
    for node in nodes:
        console.print(f"  {node.label} [dim]({node.id})[/dim]")


@cli.command()
@snapshot_argument
@click.argument("node_id")
@click.option("--limit", "-n", default=5, show_default=True)
@click.pass_context
def strongest(ctx, snapshot, node_id, limit):
    """Show NODE_ID's strongest connections."""
    graph = _build(ctx, snapshot)
    _require_node(graph, node_id)

    table = Table(title=f"Strongest connections of {graph.nodes[node_id].label}")
    table.add_column("Node", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Weight", justify="right")
    for node, weight in graph.strongest_connections(node_id, limit):
        table.add_row(node.label, node.id, f"{weight:.3f}")
    console.print(table)


@cli.command()
@snapshot_argument
@click.argument("source")
@click.argument("target")
@click.pass_context
def path(ctx, snapshot, source, target):
    """Find a path between SOURCE and TARGET (first found, not shortest)."""
    graph = _build(ctx, snapshot)
    _require_node(graph, source)
    _require_node(graph, target)

    found = graph.find_path(source, target)
    if found is None:
        console.print("[yellow]No path found.[/yellow]")
        return
    console.print(" → ".join(node.label for node in found))


@cli.command()
@snapshot_argument
@click.option("--min-size", default=3, show_default=True, help="Minimum cluster size")
@click.pass_context
def clusters(ctx, snapshot, min_size):
    """List connected components."""
    graph = _build(ctx, snapshot)
    found = graph.find_clusters(min_size)
    if not found:
        console.print("[dim]No clusters.[/dim]")
        return
    for i, cluster in enumerate(found, start=1):
        labels = ", ".join(node.label for node in cluster)
        console.print(f"[bold]Cluster {i}[/bold] ({len(cluster)}): {labels}")


@cli.command()
@snapshot_argument
@click.option(
    "--kind", "-k", "kinds",
    multiple=True,
    type=click.Choice([k.value for k in RelationKind]),
    help="Relation kinds to include (repeatable, default all)",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write JSON here")
@click.pass_context
def export(ctx, snapshot, kinds, output):
    """Export nodes and edges as visualization JSON."""
    graph = _build(ctx, snapshot)
    include = {RelationKind(k) for k in kinds} if kinds else None
    data = graph.export_for_visualization(include, StaticTagNames()).to_dict()
    text = json.dumps(data, indent=2)

    if output is None:
        click.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text)
    console.print(f"[green]✓[/green] Exported to: {output}")
    console.print(f"   {len(data['nodes'])} nodes, {len(data['edges'])} edges")


@cli.command()
@snapshot_argument
@click.option("--ticks", default=500, show_default=True, help="Simulation ticks to run")
@click.option("--seed", default=0, show_default=True, help="Random seed for initial jitter")
@click.option("--width", default=800.0, show_default=True)
@click.option("--height", default=600.0, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print positions as JSON")
@click.pass_context
def layout(ctx, snapshot, ticks, seed, width, height, as_json):
    """Run the force-directed layout and print final positions."""
    graph = _build(ctx, snapshot)
    loop = LayoutLoop(LayoutSimulator(LayoutConfig(width=width, height=height), seed=seed))
    loop.sync_graph(graph)
    positions = loop.step(ticks)

    if as_json:
        click.echo(json.dumps({nid: list(p) for nid, p in positions.items()}, indent=2))
        return

    table = Table(title=f"Layout after {ticks} ticks")
    table.add_column("Node", style="cyan")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    for nid, (x, y) in positions.items():
        table.add_row(graph.nodes[nid].label, f"{x:.1f}", f"{y:.1f}")
    console.print(table)
    console.print(f"[dim]kinetic energy: {loop.simulator.kinetic_energy():.4f}[/dim]")


if __name__ == "__main__":
    cli()
