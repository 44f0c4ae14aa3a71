"""
engine/task_scanner.py -- ``{TYPE: text}`` task annotations.

Any run of uppercase letters and underscores is a valid task type, so the
set of types is open-ended (``{TODO: ...}``, ``{RESEARCH: ...}``,
``{CONTINUITY: ...}``).  Types are listed with ``TODO``, ``RESEARCH`` and
``EDIT`` pinned first and everything else alphabetical.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from engine.config import ProjectConfig
from engine.models.records import TaskRecord
from engine.models.tree import Collapsible, TaskNode, TaskTypeNode, TreeNode, parse_node
from engine.search_filter import SearchFilter
from engine.utils import read_text

logger = logging.getLogger(__name__)

TASK_RE = re.compile(r"\{([A-Z_]+):\s*([^}\n]+)\}")

PRIORITY_TYPES = ("TODO", "RESEARCH", "EDIT")


def type_sort_key(task_type: str):
    if task_type in PRIORITY_TYPES:
        return (0, PRIORITY_TYPES.index(task_type), "")
    return (1, 0, task_type)


def scan_tasks(text: str, file_path: str) -> list[TaskRecord]:
    file_name = os.path.basename(file_path)
    tasks = []
    for match in TASK_RE.finditer(text):
        line_start = text.rfind("\n", 0, match.start()) + 1
        tasks.append(TaskRecord(
            task=match.group(2).strip(),
            type=match.group(1),
            file_path=file_path,
            file_name=file_name,
            line=text.count("\n", 0, match.start()),
            column=match.start() - line_start,
        ))
    return tasks


class TaskScanner:
    """Current task annotations of one project, rebuilt on every refresh."""

    def __init__(self, project_root, config: ProjectConfig | None = None):
        self.root = Path(project_root)
        self.config = config or ProjectConfig()
        self.filter = SearchFilter()
        self._tasks: list[TaskRecord] = []

    def refresh(self) -> list[TaskRecord]:
        tasks: list[TaskRecord] = []
        for path in self.config.source_files(self.root):
            try:
                tasks.extend(scan_tasks(read_text(path), str(path)))
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping %s: %s", path, exc)
        tasks.sort(key=lambda t: (t.file_name.casefold(), t.file_path, t.line, t.column))
        self._tasks = tasks
        logger.info("Found %d tasks", len(tasks))
        return list(tasks)

    def get_all_tasks(self) -> list[TaskRecord]:
        return list(self._tasks)

    def _visible(self) -> list[TaskRecord]:
        return [t for t in self._tasks if self.filter.matches(t.task, t.type, t.file_name)]

    def task_types(self) -> list[tuple[str, int]]:
        """``(type, count)`` pairs in display order."""
        counts: dict[str, int] = {}
        for task in self._visible():
            counts[task.type] = counts.get(task.type, 0) + 1
        return [(t, counts[t]) for t in sorted(counts, key=type_sort_key)]

    def tasks_of_type(self, task_type: str) -> list[TaskRecord]:
        tasks = [t for t in self._visible() if t.type == task_type]
        return sorted(tasks, key=lambda t: (t.file_name.casefold(), t.file_path, t.line, t.column))

    def get_children(self, node=None) -> list[TreeNode]:
        if node is None:
            return [
                TaskTypeNode(
                    label=task_type,
                    task_type=task_type,
                    count=count,
                    description=f"{count} tasks",
                    collapsible=Collapsible.EXPANDED,
                )
                for task_type, count in self.task_types()
            ]
        node = parse_node(node)
        if node.kind == "task_type":
            return [
                TaskNode(
                    label=f"{task.file_name}:{task.line + 1} - {task.task}",
                    task_type=task.type,
                    file_path=task.file_path,
                    line=task.line,
                    column=task.column,
                    tooltip=f"{task.type}: {task.task}",
                )
                for task in self.tasks_of_type(node.task_type)
            ]
        if node.kind == "task":
            return []
        raise TypeError(f"Tasks view has no children for node kind {node.kind!r}")
