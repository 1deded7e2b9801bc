"""User-facing notifications (the CLI's stand-in for toasts).

A notifier shows a message and hands back an id; the same id can later be
used to replace an in-flight "loading" message with its final outcome.
"""

import itertools
import logging
from typing import Dict, List, Optional, Tuple

import click

LOADING = "loading"
INFO = "info"
SUCCESS = "success"
ERROR = "error"


class Notifier:
    """Base notifier; subclasses override ``_emit``."""

    def __init__(self):
        self._ids = itertools.count(1)

    def show(self, message: str, level: str = INFO) -> int:
        notification_id = next(self._ids)
        self._emit(notification_id, message, level)
        return notification_id

    def update(self, notification_id: int, message: str, level: str = INFO) -> None:
        self._emit(notification_id, message, level)

    def _emit(self, notification_id: int, message: str, level: str) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Route notifications to a logger."""

    _LEVELS = {
        LOADING: logging.INFO,
        INFO: logging.INFO,
        SUCCESS: logging.INFO,
        ERROR: logging.ERROR,
    }

    def __init__(self, logger: logging.Logger):
        super().__init__()
        self.logger = logger

    def _emit(self, notification_id: int, message: str, level: str) -> None:
        self.logger.log(self._LEVELS.get(level, logging.INFO), f"[{notification_id}] {message}")


class ClickNotifier(Notifier):
    """Print notifications to the terminal."""

    _STYLES = {
        LOADING: ("…", "cyan"),
        INFO: ("ℹ", "blue"),
        SUCCESS: ("✓", "green"),
        ERROR: ("✗", "red"),
    }

    def _emit(self, notification_id: int, message: str, level: str) -> None:
        icon, colour = self._STYLES.get(level, ("•", None))
        click.echo(click.style(f"{icon} {message}", fg=colour), err=level == ERROR)


class RecordingNotifier(Notifier):
    """Keep notifications in memory; used by tests and dry runs."""

    def __init__(self):
        super().__init__()
        self.history: List[Tuple[int, str, str]] = []
        self.current: Dict[int, Tuple[str, str]] = {}

    def _emit(self, notification_id: int, message: str, level: str) -> None:
        self.history.append((notification_id, message, level))
        self.current[notification_id] = (message, level)

    def last(self) -> Optional[Tuple[int, str, str]]:
        return self.history[-1] if self.history else None
