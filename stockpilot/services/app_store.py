"""Process-wide session state: signed-in user, stores and active store.

Single writer, many readers. The state is a frozen :class:`AppState` that
is replaced wholesale by the mutators below; readers get the current
object and can never patch it in place.
"""

import json
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..models.session import AppState, StoreSummary, User
from ..utils.logger import get_catalog_logger

Listener = Callable[[AppState, AppState], None]


class AppStore:
    """Observable holder of the :class:`AppState`."""

    def __init__(self, state: Optional[AppState] = None, path: Optional[Path] = None):
        """
        Args:
            state: Initial state (empty when omitted)
            path: JSON file the state is persisted to after every change
        """
        self._state = state or AppState()
        self._path = path
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []
        self.logger = get_catalog_logger()

    @classmethod
    def load(cls, path: Path) -> "AppStore":
        """Restore the state persisted at ``path`` (empty when missing or corrupt)."""
        path = Path(path)
        state = AppState()
        if path.exists():
            try:
                state = AppState.from_dict(json.loads(path.read_text()))
            except (ValueError, TypeError, KeyError) as e:
                get_catalog_logger().warning(f"Ignoring unreadable state file {path}: {str(e)}")
        return cls(state=state, path=path)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def user(self) -> Optional[User]:
        return self._state.user

    @property
    def active_store(self) -> Optional[StoreSummary]:
        return self._state.active_store

    def get_active_store(self) -> Optional[StoreSummary]:
        """The active store, looked up in the store list when it is loaded."""
        state = self._state
        if state.active_store is None:
            return None
        if not state.stores:
            return state.active_store
        for store in state.stores:
            if store.store_id == state.active_store.store_id:
                return store
        return None

    def is_logged_in(self) -> bool:
        return self._state.user is not None

    def has_stores(self) -> bool:
        return len(self._state.stores) > 0

    def active_store_name(self) -> Optional[str]:
        store = self.get_active_store()
        return store.store_name if store else None

    # ------------------------------------------------------------------
    # The only mutators
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(old, new)`` after every change; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes) -> AppState:
        """
        Replace the state with a copy carrying ``changes``.

        The new state is written to disk before it is installed; when the
        write fails the old state stays current and no listener runs.

        Raises:
            OSError: The state file could not be written
        """
        if "stores" in changes:
            changes["stores"] = tuple(changes["stores"])
        with self._lock:
            old = self._state
            new = replace(old, **changes)
            self._persist(new)
            self._state = new
            listeners = list(self._listeners)

        for listener in listeners:
            listener(old, new)
        return new

    def set_user(self, user: Optional[User]) -> AppState:
        return self.update(user=user)

    def set_stores(self, stores: Sequence[StoreSummary]) -> AppState:
        return self.update(stores=stores)

    def set_active_store(self, store: Optional[StoreSummary]) -> AppState:
        self.logger.info(f"Active store -> {store.store_name if store else None}")
        return self.update(active_store=store)

    def clear(self) -> AppState:
        return self.update(user=None, stores=(), active_store=None)

    def _persist(self, state: AppState) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(state.to_dict(), indent=2))
