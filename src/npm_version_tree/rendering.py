"""
Output formatting for version trees.

Provides console output using the Rich library and a JSON export.
"""

import json
from typing import Dict, Optional, Set

from rich.console import Console
from rich.panel import Panel
from rich.tree import Tree

from .models import VersionNode

CIRCULAR_MARKER = "(circular)"


def node_label(node: VersionNode) -> str:
    return f"{node.name}@{node.version}"


class TreeRenderer:
    """Formats and displays version trees."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def build_tree(self, root: VersionNode) -> Tree:
        """
        Convert a version tree into a Rich tree.

        A node already present on the path from the root is rendered once
        more with a circular marker and is not expanded again.
        """
        tree = Tree(f"[bold blue]{node_label(root)}[/bold blue]", guide_style="dim")
        self._add_children(tree, root, {id(root)})
        return tree

    def _add_children(self, branch: Tree, node: VersionNode, path: Set[int]) -> None:
        for dep in node.deps or []:
            if id(dep) in path:
                branch.add(f"[yellow]{node_label(dep)}[/yellow] [dim]{CIRCULAR_MARKER}[/dim]")
                continue

            child = branch.add(node_label(dep) if dep.deps else f"[green]{node_label(dep)}[/green]")
            path.add(id(dep))
            self._add_children(child, dep, path)
            path.discard(id(dep))

    def print_tree(self, root: VersionNode, quiet: bool = False) -> None:
        """Print a version tree with a summary footer."""
        self.console.print(self.build_tree(root))
        if not quiet:
            self._print_footer(root)

    def _print_footer(self, root: VersionNode) -> None:
        stats = count_nodes(root)
        self.console.print()
        self.console.print(
            Panel(
                f"📦 {stats['unique']} unique package versions, "
                f"{stats['edges']} dependency edges, "
                f"{stats['leaves']} leaves",
                border_style="dim",
            )
        )

    def to_json(self, root: VersionNode) -> str:
        return json.dumps(root.to_dict(), indent=2, ensure_ascii=False)

    def write_json(self, root: VersionNode, output_file: Optional[str] = None) -> None:
        """Export a version tree as JSON to a file or stdout."""
        json_output = self.to_json(root)

        if output_file:
            with open(output_file, "w", encoding="utf-8") as f:
                f.write(json_output)
            Console(stderr=True).print(f"✅ Tree saved to {output_file}", style="green")
        else:
            print(json_output)


def count_nodes(root: VersionNode) -> Dict[str, int]:
    """Count distinct nodes, edges between them and leaves of a version graph."""
    seen: Set[int] = set()
    edges = 0
    leaves = 0

    stack = [root]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        if not node.deps:
            leaves += 1
        edges += len(node.deps or [])
        stack.extend(node.deps or [])

    return {"unique": len(seen), "edges": edges, "leaves": leaves}
