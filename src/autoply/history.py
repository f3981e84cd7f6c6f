"""Summary: Rolling conversation history per user.

Importance: Gives the router and generator a bounded, time-ordered view of prior turns.
Alternatives: Send the full conversation on every call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from autoply.models import MESSAGE_ROLES, Message
from autoply.storage.sqlite_store import SqliteStore
from autoply.text import format_timestamp, strip_markdown

DEFAULT_HISTORY_LIMIT = 20


@dataclass(frozen=True)
class ConversationHistoryStore:
    """Summary: Append-only message log view capped at the most recent turns.

    Importance: Keeps model context small and legible while preserving ordering.
    Alternatives: Summarize old turns into a running memo.
    """

    store: SqliteStore
    limit: int = DEFAULT_HISTORY_LIMIT
    clock: Callable[[], datetime] = datetime.utcnow

    def load(self, user_id: str) -> list[Message]:
        """Summary: Return up to `limit` most recent messages, oldest first."""

        return self.store.recent_messages(user_id, self.limit)

    def append(self, user_id: str, role: str, content: str) -> Message:
        """Summary: Persist one turn with markdown removed.

        Importance: Nothing downstream ever sees markdown styling.
        Alternatives: Strip markdown at render time only.
        """

        if role not in MESSAGE_ROLES:
            raise ValueError(f"Unknown message role: {role}")
        message = Message(
            user_id=user_id,
            role=role,
            content=strip_markdown(content),
            timestamp=self.clock(),
        )
        self.store.append_message(message)
        return message


def render(messages: list[Message]) -> list[dict[str, str]]:
    """Summary: Convert messages into chat-model turns with a readable time prefix.

    Importance: Lets the models judge recency without raw machine timestamps.
    Alternatives: Pass ISO timestamps as separate metadata.
    """

    return [
        {
            "role": message.role,
            "content": f"[{format_timestamp(message.timestamp)}] {strip_markdown(message.content)}",
        }
        for message in messages
    ]


def render_transcript(turns: list[dict[str, str]]) -> str:
    return "\n".join(f"{turn['role']}: {turn['content']}" for turn in turns)
