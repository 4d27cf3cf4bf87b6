#!/usr/bin/env python3
"""
Directory tree of per-file coverage with aggregated directory totals.

The tree is rebuilt wholesale for every file list: build_tree() lays out
the directories, aggregate() fills in directory totals bottom-up, and
compact() opens single-child directory chains for the first render.
"""

import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from coverage_common import coverage_ratio


class NodeKind(Enum):
    DIR = "dir"
    FILE = "file"


@dataclass(eq=False)
class TreeNode:
    name: str
    kind: NodeKind
    hits: int = 0
    lines: int = 0
    ratio: float = 0.0
    depth: int = 0
    expanded: bool = False
    children: list = field(default_factory=list)
    path: str = ""
    by_name: dict = field(default_factory=dict, repr=False)

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIR

    def child(self, name: str) -> Optional["TreeNode"]:
        return self.by_name.get(name)

    def add(self, node: "TreeNode") -> "TreeNode":
        self.by_name[node.name] = node
        self.children.append(node)
        return node


def sort_key(node: TreeNode):
    # directories first, then code-point order of the name
    return (0 if node.is_dir else 1, node.name)


def build_tree(files) -> TreeNode:
    """Build a directory/file tree from FileRecords.

    Paths are split on "/". A record whose path collides with an existing
    node of the other kind, or repeats an existing file, is skipped: the
    first record wins.
    """
    root = TreeNode(name="", kind=NodeKind.DIR, expanded=True)

    for record in files:
        parts = [p for p in record.path.split("/") if p]
        if not parts:
            continue

        parent = root
        for depth, name in enumerate(parts[:-1]):
            node = parent.child(name)
            if node is None:
                node = parent.add(TreeNode(name=name, kind=NodeKind.DIR, depth=depth))
            elif not node.is_dir:
                parent = None
                break
            parent = node

        if parent is None or parent.child(parts[-1]) is not None:
            print(f"Warning: skipping {record.path}: path already taken", file=sys.stderr)
            continue

        parent.add(TreeNode(
            name=parts[-1],
            kind=NodeKind.FILE,
            hits=record.hits,
            lines=record.lines,
            ratio=coverage_ratio(record.hits, record.lines),
            depth=len(parts) - 1,
            path=record.path,
        ))

    stack = [root]
    while stack:
        node = stack.pop()
        node.children.sort(key=sort_key)
        stack.extend(c for c in node.children if c.is_dir)

    return root


def aggregate(node: TreeNode):
    """Compute hits, lines and ratio of every directory, children first."""
    if not node.is_dir:
        return

    hits = 0
    lines = 0
    for child in node.children:
        aggregate(child)
        hits += child.hits
        lines += child.lines

    node.hits = hits
    node.lines = lines
    node.ratio = coverage_ratio(hits, lines)


def walk(root: TreeNode):
    """Pre-order iteration over every node below root."""
    stack = list(reversed(root.children))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def compact(root: TreeNode):
    """Expand every directory with a single child, together with that child."""
    root.expanded = True
    for node in [root, *walk(root)]:
        if node.is_dir and len(node.children) == 1:
            node.expanded = True
            node.children[0].expanded = True


def toggle(node: TreeNode):
    # the root has the only empty name and stays expanded
    if not node.is_dir or not node.name:
        return
    node.expanded = not node.expanded


def visible_rows(root: TreeNode) -> list:
    """List the nodes shown under root given the current expand state."""
    rows = []
    stack = list(reversed(root.children))
    while stack:
        node = stack.pop()
        rows.append(node)
        if node.is_dir and node.expanded:
            stack.extend(reversed(node.children))
    return rows


class TreeViewModel:
    """Expand/collapse state over an aggregated coverage tree.

    `on_select` is called with a file's path when a visible file row is
    selected; it is the only way a source view gets requested.
    """

    def __init__(self, root: TreeNode, on_select: Optional[Callable[[str], None]] = None):
        self.root = root
        self.on_select = on_select

    @classmethod
    def from_files(cls, files, on_select: Optional[Callable[[str], None]] = None) -> "TreeViewModel":
        model = cls(TreeNode(name="", kind=NodeKind.DIR, expanded=True), on_select)
        model.load(files)
        return model

    def load(self, files):
        """Replace the tree with one built from a new file list.

        Expand state is not carried over.
        """
        root = build_tree(files)
        aggregate(root)
        compact(root)
        self.root = root

    def rows(self) -> list:
        return visible_rows(self.root)

    def toggle(self, node: TreeNode):
        toggle(node)

    def select(self, node: TreeNode) -> bool:
        if node.is_dir or node not in self.rows():
            return False
        if self.on_select is not None:
            self.on_select(node.path)
        return True
