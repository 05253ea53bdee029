"""Output formatting for graph payloads."""

import json
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from repograph.schemas.graph import GraphMode, GraphPayload

TOP_ROWS = 10


class OutputFormatter:
    """Renders a payload as JSON or as rich summary tables."""

    def __init__(self, force_color: bool = False, width: int = 120):
        """Initialize formatter."""
        self.force_color = force_color
        self.width = width

    def format_json(self, payload: GraphPayload, indent: int = 2) -> str:
        """The camelCase JSON document handed to renderers."""
        return json.dumps(payload.to_dict(), indent=indent, ensure_ascii=False)

    def format(self, payload: GraphPayload, output_format: str) -> str:
        if output_format == "summary":
            return self.format_summary(payload)
        return self.format_json(payload)

    def _console(self) -> Console:
        return Console(
            width=self.width,
            force_terminal=self.force_color,
            color_system="auto" if self.force_color else None,
        )

    def format_summary(self, payload: GraphPayload) -> str:
        """Tables with node counts, the heaviest nodes and edges, summary lines and warnings."""
        console = self._console()
        with console.capture() as capture:
            console.print(self._overview_table(payload))
            if payload.mode == GraphMode.GIT_HEATMAP and payload.heatmap is not None:
                console.print(self._heatmap_table(payload))
            else:
                console.print(self._kind_table(payload))
                if payload.nodes:
                    console.print(self._top_nodes_table(payload))
                if payload.edges:
                    console.print(self._top_edges_table(payload))
            for line in payload.summary or []:
                console.print(f"[blue]ℹ[/blue] {line}")
            for warning in payload.warnings or []:
                console.print(f"[yellow]⚠[/yellow] {warning}")
        return capture.get()

    def _overview_table(self, payload: GraphPayload) -> Table:
        table = Table(title="Graph", show_header=True, header_style="bold magenta")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Mode", payload.mode.value if payload.mode else "-")
        table.add_row("Nodes", str(len(payload.nodes)))
        table.add_row("Edges", str(len(payload.edges)))
        if payload.generated_at is not None:
            table.add_row("Generated at", str(payload.generated_at))
        return table

    def _kind_table(self, payload: GraphPayload) -> Table:
        counts: dict[str, int] = {}
        for node in payload.nodes:
            kind = node.category or node.kind.value
            counts[kind] = counts.get(kind, 0) + 1
        table = Table(title="Nodes by kind", show_header=True, header_style="bold magenta")
        table.add_column("Kind", style="cyan")
        table.add_column("Count", style="green", justify="right")
        for kind, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
            table.add_row(kind, str(count))
        return table

    def _top_nodes_table(self, payload: GraphPayload) -> Table:
        table = Table(title="Top nodes", show_header=True, header_style="bold magenta")
        table.add_column("Node", style="cyan")
        table.add_column("Kind")
        table.add_column("Fan-in", justify="right")
        table.add_column("Fan-out", justify="right")
        table.add_column("Weight", style="green", justify="right")
        ranked = sorted(payload.nodes, key=lambda node: (-node.weight, node.label))
        for node in ranked[:TOP_ROWS]:
            table.add_row(
                node.label, node.category or node.kind.value, str(node.fan_in), str(node.fan_out), str(node.weight)
            )
        return table

    def _top_edges_table(self, payload: GraphPayload) -> Table:
        labels = {node.id: node.label for node in payload.nodes}
        table = Table(title="Edges", show_header=True, header_style="bold magenta")
        table.add_column("From", style="cyan")
        table.add_column("To", style="cyan")
        table.add_column("Kind")
        table.add_column("Label")
        for edge in payload.edges[:TOP_ROWS]:
            table.add_row(
                labels.get(edge.source, edge.source),
                labels.get(edge.target, edge.target),
                edge.category or edge.kind.value,
                edge.label,
            )
        return table

    def _heatmap_table(self, payload: GraphPayload) -> Table:
        heatmap = payload.heatmap
        table = Table(title="Strongest co-changes", show_header=True, header_style="bold magenta")
        table.add_column("Module", style="cyan")
        table.add_column("Module", style="cyan")
        table.add_column("Commits", justify="right")
        table.add_column("Normalized", style="green", justify="right")
        for cell in heatmap.cells[:TOP_ROWS]:
            table.add_row(
                heatmap.modules[cell.row],
                heatmap.modules[cell.column],
                str(cell.commit_count),
                f"{cell.normalized_weight:.2f}",
            )
        return table


def write_output(content: str, output: Optional[str]) -> Optional[Path]:
    """Write content to a file when output is set; returns the path written."""
    if not output:
        return None
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def payload_stats(payload: GraphPayload) -> dict[str, Any]:
    return {
        "mode": payload.mode.value if payload.mode else None,
        "nodes": len(payload.nodes),
        "edges": len(payload.edges),
        "warnings": len(payload.warnings or []),
    }
