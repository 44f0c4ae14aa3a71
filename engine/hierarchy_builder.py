"""
engine/hierarchy_builder.py -- Builds the story tree from structure items.

The flat item list produced by :class:`engine.structure_scanner.StructureScanner`
is turned into a directed graph (``networkx.DiGraph``) rooted at
:data:`ROOT`:

    1. Items are grouped by folder path relative to the content root.
    2. Folder groups are processed shallowest first; one folder node is
       synthesized per path segment and reused for every deeper path.
    3. Within a folder, each file's items are walked in line order with a
       stack of open ancestors.  A heading pops the stack until the top is
       strictly shallower, then attaches below it.  An event attaches to
       whatever heading is open, regardless of depth.
    4. Siblings are ordered by dotted chapter number, numbered before
       unnumbered, then by title.  Items from the same file keep their
       document order.

Every input item becomes exactly one node, so the tree is a total function
of the item list.

Usage::

    from engine.hierarchy_builder import StoryHierarchy

    tree = StoryHierarchy(scanner.get_all_structure())
    for node_id in tree.children():
        print(tree.item(node_id).title)
"""

from __future__ import annotations

import functools
import logging
from typing import Iterable, Iterator

import networkx as nx

from engine.models.records import StructureItem, StructureType
from engine.models.tree import Collapsible, StructureNode, TreeNode, parse_node
from engine.structure_scanner import compare_chapter_numbers

logger = logging.getLogger(__name__)

ROOT = "__root__"


def folder_node_id(path: str) -> str:
    return f"folder:{path}"


def item_node_id(item: StructureItem) -> str:
    return f"item:{item.file_path}:{item.line}"


def _folder_depth(path: str) -> int:
    return len(path.split("/")) if path else 0


def _compare_anchors(a: StructureItem, b: StructureItem) -> int:
    if a.chapter_number and b.chapter_number:
        result = compare_chapter_numbers(a.chapter_number, b.chapter_number)
        if result:
            return result
    elif a.chapter_number:
        return -1
    elif b.chapter_number:
        return 1
    left = (a.title.casefold(), a.file_path)
    right = (b.title.casefold(), b.file_path)
    return (left > right) - (left < right)


class StoryHierarchy:
    """Tree of folders, acts, chapters, sections and events.

    Parameters
    ----------
    items : iterable of StructureItem
        The flat, cross-file item list.
    """

    def __init__(self, items: Iterable[StructureItem] = ()):
        self.graph = nx.DiGraph()
        self.graph.add_node(ROOT, item=None, rank=0)
        self._build(list(items))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _build(self, items: list[StructureItem]) -> None:
        by_folder: dict[str, list[StructureItem]] = {}
        for item in items:
            by_folder.setdefault(item.folder_path or "", []).append(item)

        for folder in sorted(by_folder, key=lambda p: (_folder_depth(p), p)):
            parent = self._ensure_folder(folder)
            self._attach_folder_items(by_folder[folder], parent)

        for node_id in list(self.graph.nodes):
            self._rank_children(node_id)

        logger.debug(
            "Built story hierarchy: %d nodes, %d roots",
            self.graph.number_of_nodes() - 1, self.graph.out_degree(ROOT),
        )

    def _ensure_folder(self, path: str) -> str:
        """Return the node id for *path*, creating missing folder nodes."""
        if not path:
            return ROOT
        parent = ROOT
        cumulative = ""
        for segment in path.split("/"):
            cumulative = f"{cumulative}/{segment}" if cumulative else segment
            node_id = folder_node_id(cumulative)
            if node_id not in self.graph:
                folder = StructureItem(
                    title=segment,
                    level=0,
                    type=StructureType.FOLDER,
                    line=0,
                    file_name=segment,
                    file_path="",
                    folder_path=cumulative,
                )
                self.graph.add_node(node_id, item=folder, rank=0)
                self.graph.add_edge(parent, node_id)
            parent = node_id
        return parent

    def _attach_folder_items(self, items: list[StructureItem], parent: str) -> None:
        by_file: dict[str, list[StructureItem]] = {}
        for item in items:
            by_file.setdefault(item.file_path, []).append(item)

        for file_path in sorted(by_file):
            stack: list[StructureItem] = []
            for item in sorted(by_file[file_path], key=lambda i: i.line):
                node_id = item_node_id(item)
                if node_id in self.graph:
                    logger.warning("Duplicate structure item %s ignored", node_id)
                    continue
                self.graph.add_node(node_id, item=item, rank=0)

                if item.is_event:
                    owner = item_node_id(stack[-1]) if stack else parent
                    self.graph.add_edge(owner, node_id)
                    continue

                while stack and stack[-1].level >= item.level:
                    stack.pop()
                owner = item_node_id(stack[-1]) if stack else parent
                self.graph.add_edge(owner, node_id)
                stack.append(item)

    def _rank_children(self, node_id: str) -> None:
        """Store each child's sibling position in its ``rank`` attribute."""
        children = list(self.graph.successors(node_id))
        if not children:
            return

        # Children from the same file form one block anchored on the first
        # of them, so per-file document order survives the sort.
        blocks: dict[str, list[str]] = {}
        anchors: dict[str, StructureItem] = {}
        for child in children:
            item = self.graph.nodes[child]["item"]
            key = child if item.is_folder else item.file_path
            if key not in blocks:
                blocks[key] = []
                anchors[key] = item
            blocks[key].append(child)

        for key in blocks:
            blocks[key].sort(key=lambda c: self.graph.nodes[c]["item"].line)
        ordered_keys = sorted(
            blocks, key=functools.cmp_to_key(lambda a, b: _compare_anchors(anchors[a], anchors[b]))
        )

        rank = 0
        for key in ordered_keys:
            for child in blocks[key]:
                self.graph.nodes[child]["rank"] = rank
                rank += 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return sum(
            1 for node_id, data in self.graph.nodes(data=True)
            if node_id != ROOT and not data["item"].is_folder
        )

    def item(self, node_id: str) -> StructureItem:
        return self.graph.nodes[node_id]["item"]

    def children(self, node_id: str = ROOT) -> list[str]:
        """Child node ids in sibling order."""
        return sorted(self.graph.successors(node_id), key=lambda c: self.graph.nodes[c]["rank"])

    def parent(self, node_id: str) -> str | None:
        preds = list(self.graph.predecessors(node_id))
        return preds[0] if preds else None

    def roots(self) -> list[StructureItem]:
        return [self.item(node_id) for node_id in self.children(ROOT)]

    def collapsible(self, node_id: str) -> Collapsible:
        item = self.item(node_id)
        if item.is_event:
            return Collapsible.NONE
        if item.is_folder or self.graph.out_degree(node_id) > 0:
            return Collapsible.COLLAPSED
        return Collapsible.NONE

    def walk(self, node_id: str = ROOT, depth: int = 0) -> Iterator[tuple[str, int]]:
        """Depth-first ``(node_id, depth)`` pairs below *node_id*."""
        for child in self.children(node_id):
            yield child, depth
            yield from self.walk(child, depth + 1)

    # ------------------------------------------------------------------
    # Tree view
    # ------------------------------------------------------------------

    def to_node(self, node_id: str) -> StructureNode:
        item = self.item(node_id)
        description = ""
        if item.word_count is not None:
            description = f"{item.word_count} words"
        tooltip = item.title
        if item.file_name and not item.is_folder:
            tooltip = f"{item.title}\n{item.file_name}:{item.line}"
        return StructureNode(
            label=item.title,
            node_id=node_id,
            item_type=item.type.value,
            file_path=item.file_path,
            line=item.line,
            description=description,
            tooltip=tooltip,
            collapsible=self.collapsible(node_id),
        )

    def get_children(self, node=None) -> list[TreeNode]:
        if node is None:
            return [self.to_node(child) for child in self.children(ROOT)]
        node = parse_node(node)
        if node.kind != "structure":
            raise TypeError(f"Structure view has no children for node kind {node.kind!r}")
        if node.node_id not in self.graph:
            return []
        return [self.to_node(child) for child in self.children(node.node_id)]
