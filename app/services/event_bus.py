"""
app/services/event_bus.py -- Application-wide event bus using Qt signals.

Singleton carrying the change notifications the tree views subscribe to.
Views connect to the EventBus rather than to the engine, so a refresh
never needs to know which views exist.

Usage::

    from app.services.event_bus import EventBus

    bus = EventBus.instance()
    bus.characters_changed.connect(view.reload)
"""

from __future__ import annotations

import threading

from PySide6.QtCore import QObject, Signal


class EventBus(QObject):
    """Application-wide signal bus.

    Signals
    -------
    characters_changed()
        Fired after a successful character refresh or character edit.
    structure_changed()
        Fired after the structure snapshot and hierarchy were rebuilt.
    markers_changed()
        Fired after a marker refresh.
    tasks_changed()
        Fired after a task refresh.
    character_renamed(str, str)
        Fired after a character rename.  Payload is (old name, new name).
    refresh_started()
        Fired when a debounced refresh begins.
    refresh_finished()
        Fired when a debounced refresh ends, successful or not.
    error_occurred(str)
        Fired when an error needs to be shown to the user.
    status_message(str)
        Fired to update the status bar message.
    """

    # View snapshots
    characters_changed = Signal()
    structure_changed = Signal()
    markers_changed = Signal()
    tasks_changed = Signal()

    # Character edits
    character_renamed = Signal(str, str)

    # Refresh lifecycle
    refresh_started = Signal()
    refresh_finished = Signal()

    # Error and status
    error_occurred = Signal(str)
    status_message = Signal(str)

    # Singleton
    _instance: EventBus | None = None
    _lock = threading.Lock()

    @classmethod
    def instance(cls) -> EventBus:
        """Return the singleton EventBus instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for testing)."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.deleteLater()
            cls._instance = None
