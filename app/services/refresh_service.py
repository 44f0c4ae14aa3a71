"""
app/services/refresh_service.py -- Debounced refresh driven by host events.

Translates editor notifications (text changed, file opened, created or
deleted) into engine refreshes and publishes the results on the
:class:`EventBus`.  Text changes are debounced through
:class:`engine.refresh_scheduler.RefreshScheduler`; a single-shot
``QTimer`` wakes the scheduler when the pending refresh is due.

Character commands (create, rename, set category) also go through here so
their side effects are announced the same way as a refresh.

Usage::

    from app.services.refresh_service import RefreshService

    service = RefreshService(EngineManager.get_instance(root))
    editor.textChanged.connect(service.notify_text_changed)
"""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, QTimer

from app.services.event_bus import EventBus
from engine.engine_manager import EngineManager, RefreshSummary
from engine.refresh_scheduler import RefreshScheduler

logger = logging.getLogger(__name__)

_CHANGE_SIGNALS = {
    "characters": "characters_changed",
    "structure": "structure_changed",
    "markers": "markers_changed",
    "tasks": "tasks_changed",
}


class RefreshService(QObject):
    """Owns the debounce timer and publishes refresh results.

    Parameters
    ----------
    engine : EngineManager
        Engine for the open project.
    bus : EventBus, optional
        Defaults to the application-wide bus.
    drop_while_running : bool
        Forwarded to :class:`RefreshScheduler`.
    """

    def __init__(
        self,
        engine: EngineManager,
        bus: EventBus | None = None,
        parent: QObject | None = None,
        *,
        drop_while_running: bool = False,
    ):
        super().__init__(parent)
        self._engine = engine
        self._bus = bus or EventBus.instance()
        self._last_summary: RefreshSummary | None = None
        self._scheduler = RefreshScheduler(
            self._run_refresh,
            delay=engine.config.debounce_seconds,
            drop_while_running=drop_while_running,
        )

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timeout)

    @property
    def scheduler(self) -> RefreshScheduler:
        return self._scheduler

    @property
    def last_summary(self) -> RefreshSummary | None:
        return self._last_summary

    # ------------------------------------------------------------------
    # Host notifications
    # ------------------------------------------------------------------

    def notify_text_changed(self, *_args) -> None:
        """Debounced: many edits inside the window become one refresh."""
        self._scheduler.request()
        self._arm()

    def notify_file_opened(self, *_args) -> None:
        self._request_immediate()

    def notify_file_created(self, *_args) -> None:
        self._request_immediate()

    def notify_file_deleted(self, *_args) -> None:
        self._request_immediate()

    def refresh_now(self) -> RefreshSummary:
        """Refresh everything synchronously, bypassing the debounce."""
        self._scheduler.cancel()
        self._timer.stop()
        return self._run_refresh()

    def _request_immediate(self) -> None:
        if self._scheduler.request():
            self._scheduler.flush()
        self._arm()

    # ------------------------------------------------------------------
    # Timer plumbing
    # ------------------------------------------------------------------

    def _arm(self) -> None:
        wait = self._scheduler.time_until_due()
        if wait is None:
            self._timer.stop()
            return
        self._timer.start(int(wait * 1000))

    def _on_timeout(self) -> None:
        self._scheduler.run_due()
        self._arm()

    # ------------------------------------------------------------------
    # Refresh and publishing
    # ------------------------------------------------------------------

    def _run_refresh(self) -> RefreshSummary:
        self._bus.refresh_started.emit()
        try:
            summary = self._engine.refresh_all()
            self._publish(summary)
            return summary
        finally:
            self._bus.refresh_finished.emit()

    def _publish(self, summary: RefreshSummary) -> None:
        self._last_summary = summary
        for name, signal_name in _CHANGE_SIGNALS.items():
            if name in summary.counts:
                getattr(self._bus, signal_name).emit()
        for name, message in summary.errors.items():
            self._bus.error_occurred.emit(f"Refreshing {name} failed: {message}")
        if summary.card_report is not None:
            for issue in summary.card_report.issues:
                self._bus.error_occurred.emit(f"Character card error ({issue.action}): {issue.message}")
        self._bus.status_message.emit(
            f"{summary.counts.get('characters', 0)} characters, "
            f"{summary.counts.get('structure', 0)} structure items"
        )

    # ------------------------------------------------------------------
    # Character commands
    # ------------------------------------------------------------------

    def create_character(self, name: str):
        """Create a character card.  Invalid names raise ``ValueError``."""
        with self._engine.get_lock("characters"):
            record = self._engine.characters.create_character(name)
        self._bus.characters_changed.emit()
        self._bus.status_message.emit(f"Created character card for {record.name}")
        return record

    def rename_character(self, old_name: str, new_name: str):
        """Rename a character everywhere, then refresh.

        Invalid names raise ``ValueError`` before anything is written.
        Files that could not be rewritten are reported on the bus.
        """
        with self._engine.get_lock("characters"):
            report = self._engine.characters.rename_character(old_name, new_name)
        self._bus.character_renamed.emit(old_name, report.new_name)
        if report.failed_files:
            self._bus.error_occurred.emit(
                f"Renamed {old_name} to {report.new_name}, but {len(report.failed_files)} "
                f"file(s) could not be updated: {', '.join(report.failed_files)}"
            )
        self._bus.status_message.emit(
            f"Renamed {old_name} to {report.new_name} in {len(report.modified_files)} file(s)"
        )
        self.refresh_now()
        return report

    def set_category(self, name: str, category: str):
        with self._engine.get_lock("characters"):
            metadata = self._engine.characters.set_category(name, category)
        self._bus.characters_changed.emit()
        return metadata
