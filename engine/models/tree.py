"""
engine/models/tree.py -- Tree nodes handed to the sidebar views.

Each node is a small frozen Pydantic model with a ``kind`` discriminant.
Tree queries (``get_children``) and commands dispatch on ``kind`` and raise
``TypeError`` for anything they do not handle, so a new node kind cannot be
silently ignored.  Raw command payloads from the host are parsed through
:data:`TREE_NODE_ADAPTER` rather than probed for attributes.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Collapsible(str, Enum):
    NONE = "none"
    COLLAPSED = "collapsed"
    EXPANDED = "expanded"


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    description: str = ""
    tooltip: str = ""
    collapsible: Collapsible = Collapsible.NONE


# ------------------------------------------------------------------
# Characters panel
# ------------------------------------------------------------------

class CategoryNode(_Node):
    kind: Literal["category"] = "category"
    category: str


class CharacterNode(_Node):
    kind: Literal["character"] = "character"
    name: str
    count: int = 0
    has_category: bool = False

    @property
    def context_value(self) -> str:
        return "characterWithCategory" if self.has_category else "characterWithoutCategory"


class CharacterSectionNode(_Node):
    kind: Literal["character_section"] = "character_section"
    character: str
    section: Literal["references", "features"]


class ReferenceNode(_Node):
    kind: Literal["reference"] = "reference"
    character: str
    file_path: str
    file_name: str
    line: int
    column: int = 0


class FeatureNode(_Node):
    kind: Literal["feature"] = "feature"
    character: str
    feature_label: str
    value: str


# ------------------------------------------------------------------
# Structure panel
# ------------------------------------------------------------------

class StructureNode(_Node):
    kind: Literal["structure"] = "structure"
    node_id: str
    item_type: str
    file_path: str = ""
    line: int = 0


# ------------------------------------------------------------------
# Markers panel
# ------------------------------------------------------------------

class MarkerCategoryNode(_Node):
    kind: Literal["marker_category"] = "marker_category"
    category: str


class MarkerChapterNode(_Node):
    kind: Literal["marker_chapter"] = "marker_chapter"
    category: str
    chapter_key: str


class MarkerNode(_Node):
    kind: Literal["marker"] = "marker"
    category: Optional[str] = None
    file_path: str
    line: int
    column: int = 0


# ------------------------------------------------------------------
# Tasks panel
# ------------------------------------------------------------------

class TaskTypeNode(_Node):
    kind: Literal["task_type"] = "task_type"
    task_type: str
    count: int = 0


class TaskNode(_Node):
    kind: Literal["task"] = "task"
    task_type: str
    file_path: str
    line: int
    column: int = 0


TreeNode = Annotated[
    Union[
        CategoryNode,
        CharacterNode,
        CharacterSectionNode,
        ReferenceNode,
        FeatureNode,
        StructureNode,
        MarkerCategoryNode,
        MarkerChapterNode,
        MarkerNode,
        TaskTypeNode,
        TaskNode,
    ],
    Field(discriminator="kind"),
]

TREE_NODE_ADAPTER: TypeAdapter[TreeNode] = TypeAdapter(TreeNode)


def parse_node(payload) -> TreeNode:
    """Validate a raw command payload (dict or node) into a tree node."""
    if isinstance(payload, _Node):
        return payload
    return TREE_NODE_ADAPTER.validate_python(payload)


def character_name_of(node) -> str:
    """Return the character a characters-panel node refers to.

    Raises ``TypeError`` for nodes that do not belong to a character.
    """
    node = parse_node(node)
    if node.kind == "character":
        return node.name
    if node.kind in ("character_section", "reference", "feature"):
        return node.character
    raise TypeError(f"Node of kind {node.kind!r} does not refer to a character")
