"""
engine/models/ -- Records, metadata value objects and tree nodes.

Submodules:
    records     Scanner records (mentions, structure, markers, tasks) and
                the validated front-matter metadata models.
    tree        Discriminated tree-node models for the sidebar views.
    validators  User-input validation for character operations.
"""

from engine.models.records import (
    CharacterFeature,
    CharacterMetadata,
    CharacterRecord,
    ChapterMetadata,
    MarkerRecord,
    MentionOccurrence,
    StructureItem,
    StructureType,
    TaskRecord,
    TextStats,
)

__all__ = [
    "CharacterFeature",
    "CharacterMetadata",
    "CharacterRecord",
    "ChapterMetadata",
    "MarkerRecord",
    "MentionOccurrence",
    "StructureItem",
    "StructureType",
    "TaskRecord",
    "TextStats",
]
