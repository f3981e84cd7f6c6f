"""Summary: Per-user single-slot holder for unconfirmed drafts.

Importance: Nothing is sent until the user explicitly confirms the staged draft.
Alternatives: Persist drafts in a table keyed by user (upsert on stage, delete on resolve).

State per user is Empty -> Staged -> Empty. Staging over an existing draft replaces
it. Drafts live in process memory only and are lost on restart.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, TypeVar

from autoply.errors import DispatchFailed, NoPendingAction
from autoply.models import GeneratedEmail, PendingAction

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PendingActionStore:
    """Summary: In-memory pending slots with per-user locks.

    Importance: Serializes stage/confirm/cancel for one user while other users
    proceed in parallel.
    Alternatives: A single global lock, or a single-writer actor per user.
    """

    def __init__(self) -> None:
        self._slots: dict[str, PendingAction] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, user_id: str) -> threading.RLock:
        """Summary: Return the lock guarding one user's slot."""

        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock

    def stage(self, user_id: str, draft: GeneratedEmail | PendingAction) -> PendingAction:
        """Summary: Put a draft in the user's slot, replacing any previous one."""

        pending = (
            draft
            if isinstance(draft, PendingAction)
            else PendingAction(
                subject=draft.subject,
                body=draft.body,
                recipient_email=draft.recipient_email,
            )
        )
        with self.lock_for(user_id):
            replaced = self._slots.get(user_id)
            self._slots[user_id] = pending
        if replaced is not None:
            logger.info("Replaced pending email for user %s.", user_id)
        else:
            logger.info("Staged pending email for user %s.", user_id)
        return pending

    def peek(self, user_id: str) -> PendingAction | None:
        with self.lock_for(user_id):
            return self._slots.get(user_id)

    def confirm(self, user_id: str, dispatch: Callable[[PendingAction], T]) -> T:
        """Summary: Dispatch the staged draft and clear the slot on success.

        Importance: A failed dispatch keeps the draft staged so the user can retry.
        Alternatives: Clear first and re-stage on failure, which opens a race window.

        Raises NoPendingAction when nothing is staged and DispatchFailed when the
        dispatch callable fails.
        """

        with self.lock_for(user_id):
            pending = self._slots.get(user_id)
            if pending is None:
                raise NoPendingAction(user_id)
            try:
                result = dispatch(pending)
            except DispatchFailed:
                logger.warning("Dispatch failed for user %s; draft kept.", user_id)
                raise
            except Exception as exc:
                logger.warning("Dispatch failed for user %s; draft kept.", user_id)
                raise DispatchFailed(str(exc)) from exc
            del self._slots[user_id]
        logger.info("Confirmed pending email for user %s.", user_id)
        return result

    def cancel(self, user_id: str, strict: bool = False) -> PendingAction | None:
        """Summary: Drop the staged draft.

        Importance: Never changes state when nothing is staged; with `strict` the
        caller learns about it through NoPendingAction instead of a None return.
        Alternatives: Always raise on an empty slot.
        """

        with self.lock_for(user_id):
            pending = self._slots.pop(user_id, None)
        if pending is None:
            if strict:
                raise NoPendingAction(user_id)
            return None
        logger.info("Cancelled pending email for user %s.", user_id)
        return pending

    def take(self, user_id: str) -> PendingAction:
        with self.lock_for(user_id):
            pending = self._slots.pop(user_id, None)
        if pending is None:
            raise NoPendingAction(user_id)
        return pending

    def __len__(self) -> int:
        return len(self._slots)
