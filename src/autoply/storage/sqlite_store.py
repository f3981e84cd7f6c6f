"""Summary: SQLite storage implementation for Autoply.

Importance: Provides the message log, user records, applications, and token storage.
Alternatives: Use an ORM or an external database immediately.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

from autoply.models import AiRequest, AiResponse, Application, Message, User


@dataclass(frozen=True)
class StoredUser:
    """Summary: User record with database identifier and CV pointer.

    Importance: Links a Telegram identity to its stored CV and sender address.
    Alternatives: Keep CV metadata in a separate documents table.
    """

    id: int
    telegram_id: str
    first_name: str | None
    last_name: str | None
    cv_storage_key: str | None
    cv_media_type: str | None
    selected_email: str | None


@dataclass(frozen=True)
class StoredApplication:
    """Summary: Application record with database identifier."""

    id: int
    job_summary: str
    subject: str
    recipient_email: str
    sender_email: str
    provider_message_id: str | None
    sent_at: str


@dataclass(frozen=True)
class StoredOAuthToken:
    """Summary: OAuth token record for the mail provider.

    Importance: Carries encoded tokens plus the send-as addresses discovered at connect time.
    Alternatives: Fetch send-as addresses on every dispatch.
    """

    user_id: int
    access_token: str
    refresh_token: str | None
    expires_at: str | None
    send_as_emails: list[str]


class SqliteStore:
    """Summary: SQLite-backed storage for Autoply.

    Importance: Enables local-first persistence with minimal dependencies.
    Alternatives: Use Postgres and SQLAlchemy from day one.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)

    def initialize(self) -> None:
        """Summary: Create tables if they do not exist.

        Importance: Ensures the database is ready before the first update arrives.
        Alternatives: Run migrations using a dedicated migration tool.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    telegram_id TEXT NOT NULL UNIQUE,
                    first_name TEXT,
                    last_name TEXT,
                    cv_storage_key TEXT,
                    cv_media_type TEXT,
                    selected_email TEXT
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_user_time ON messages (user_id, timestamp)"
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS applications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    job_summary TEXT NOT NULL,
                    subject TEXT NOT NULL,
                    body TEXT NOT NULL,
                    sender_email TEXT NOT NULL,
                    recipient_email TEXT NOT NULL,
                    cv_storage_key TEXT NOT NULL,
                    provider_message_id TEXT,
                    sent_at TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS oauth_tokens (
                    user_id INTEGER PRIMARY KEY,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT,
                    expires_at TEXT,
                    send_as_emails TEXT NOT NULL DEFAULT '[]'
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS ai_requests (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT,
                    provider TEXT NOT NULL,
                    model TEXT NOT NULL,
                    prompt TEXT NOT NULL,
                    purpose TEXT NOT NULL,
                    timestamp TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS ai_responses (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    request_id INTEGER NOT NULL,
                    response_text TEXT NOT NULL,
                    latency_ms INTEGER NOT NULL,
                    token_estimate INTEGER NOT NULL
                )
                """
            )
            connection.commit()

    def upsert_user(self, user: User) -> StoredUser:
        """Summary: Create a user or refresh their names, keyed by Telegram id.

        Importance: Every inbound update maps to a stable user record.
        Alternatives: Create users only on /start.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO users (telegram_id, first_name, last_name) VALUES (?, ?, ?)
                ON CONFLICT(telegram_id) DO UPDATE SET
                    first_name = excluded.first_name,
                    last_name = excluded.last_name
                """,
                (user.telegram_id, user.first_name, user.last_name),
            )
            connection.commit()
        stored = self.get_user_by_telegram_id(user.telegram_id)
        if stored is None:
            raise RuntimeError(f"User {user.telegram_id} was not persisted")
        return stored

    def get_user(self, user_id: int) -> StoredUser | None:
        return self._fetch_user("id = ?", (user_id,))

    def get_user_by_telegram_id(self, telegram_id: str) -> StoredUser | None:
        return self._fetch_user("telegram_id = ?", (telegram_id,))

    def set_user_cv(self, user_id: int, storage_key: str, media_type: str) -> None:
        with self._connection() as connection:
            connection.execute(
                "UPDATE users SET cv_storage_key = ?, cv_media_type = ? WHERE id = ?",
                (storage_key, media_type, user_id),
            )
            connection.commit()

    def set_selected_email(self, user_id: int, email: str | None) -> None:
        with self._connection() as connection:
            connection.execute(
                "UPDATE users SET selected_email = ? WHERE id = ?",
                (email, user_id),
            )
            connection.commit()

    def append_message(self, message: Message) -> int:
        """Summary: Append one conversation turn to the log.

        Importance: The log is append-only; messages are never edited or deleted.
        Alternatives: Keep history only in memory per process.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "INSERT INTO messages (user_id, role, content, timestamp) VALUES (?, ?, ?, ?)",
                (message.user_id, message.role, message.content, message.timestamp.isoformat()),
            )
            message_id = cursor.lastrowid
            connection.commit()
        return int(message_id)

    def recent_messages(self, user_id: str, limit: int) -> list[Message]:
        """Summary: Return the most recent messages for a user, oldest first.

        Importance: Bounds the context window handed to the models.
        Alternatives: Page through the full history on every turn.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT user_id, role, content, timestamp FROM messages
                WHERE user_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                (user_id, limit),
            )
            rows = cursor.fetchall()
        return [
            Message(
                user_id=row[0],
                role=row[1],
                content=row[2],
                timestamp=datetime.fromisoformat(row[3]),
            )
            for row in reversed(rows)
        ]

    def save_application(self, application: Application) -> int:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO applications (
                    user_id, job_summary, subject, body, sender_email, recipient_email,
                    cv_storage_key, provider_message_id, sent_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    application.user_id,
                    application.job_summary,
                    application.subject,
                    application.body,
                    application.sender_email,
                    application.recipient_email,
                    application.cv_storage_key,
                    application.provider_message_id,
                    application.sent_at.isoformat(),
                ),
            )
            application_id = cursor.lastrowid
            connection.commit()
        return int(application_id)

    def list_applications(self, user_id: int, limit: int) -> list[StoredApplication]:
        """Summary: Retrieve the most recently sent applications for a user."""

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT id, job_summary, subject, recipient_email, sender_email,
                       provider_message_id, sent_at
                FROM applications
                WHERE user_id = ?
                ORDER BY sent_at DESC, id DESC
                LIMIT ?
                """,
                (user_id, limit),
            )
            rows = cursor.fetchall()
        return [StoredApplication(*row) for row in rows]

    def upsert_oauth_token(
        self,
        user_id: int,
        access_token: str,
        refresh_token: str | None,
        expires_at: str | None,
    ) -> None:
        """Summary: Insert or update the mail provider token for a user.

        Importance: Keeps a single credential row per user; refresh tokens survive
        refreshes that do not return a new one.
        Alternatives: Append a new row per refresh and read the latest.
        """

        with self._connection() as connection:
            connection.execute(
                """
                INSERT INTO oauth_tokens (user_id, access_token, refresh_token, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = COALESCE(excluded.refresh_token, oauth_tokens.refresh_token),
                    expires_at = excluded.expires_at
                """,
                (user_id, access_token, refresh_token, expires_at),
            )
            connection.commit()

    def set_send_as_emails(self, user_id: int, emails: list[str]) -> None:
        with self._connection() as connection:
            connection.execute(
                "UPDATE oauth_tokens SET send_as_emails = ? WHERE user_id = ?",
                (json.dumps(emails), user_id),
            )
            connection.commit()

    def get_oauth_token(self, user_id: int) -> StoredOAuthToken | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT user_id, access_token, refresh_token, expires_at, send_as_emails
                FROM oauth_tokens WHERE user_id = ?
                """,
                (user_id,),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return StoredOAuthToken(
            user_id=int(row[0]),
            access_token=row[1],
            refresh_token=row[2],
            expires_at=row[3],
            send_as_emails=json.loads(row[4] or "[]"),
        )

    def log_ai_request(self, request: AiRequest, user_id: str | None = None) -> int:
        """Summary: Persist an AI request for auditing.

        Importance: Tracks prompts and models used by routing and generation.
        Alternatives: Use structured logs instead of database storage.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO ai_requests (user_id, provider, model, prompt, purpose, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    request.provider,
                    request.model,
                    request.prompt,
                    request.purpose,
                    request.timestamp.isoformat(),
                ),
            )
            request_id = cursor.lastrowid
            connection.commit()
        return int(request_id)

    def log_ai_response(self, response: AiResponse) -> int:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO ai_responses (request_id, response_text, latency_ms, token_estimate)
                VALUES (?, ?, ?, ?)
                """,
                (
                    response.request_id,
                    response.response_text,
                    response.latency_ms,
                    response.token_estimate,
                ),
            )
            response_id = cursor.lastrowid
            connection.commit()
        return int(response_id)

    def count_ai_requests(self, purpose: str | None = None) -> int:
        with self._connection() as connection:
            cursor = connection.cursor()
            if purpose is None:
                cursor.execute("SELECT COUNT(*) FROM ai_requests")
            else:
                cursor.execute("SELECT COUNT(*) FROM ai_requests WHERE purpose = ?", (purpose,))
            row = cursor.fetchone()
        return int(row[0]) if row else 0

    def _fetch_user(self, clause: str, params: tuple) -> StoredUser | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"""
                SELECT id, telegram_id, first_name, last_name, cv_storage_key,
                       cv_media_type, selected_email
                FROM users WHERE {clause}
                """,
                params,
            )
            row = cursor.fetchone()
        return StoredUser(*row) if row else None

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Summary: Context manager for SQLite connections.

        Importance: Ensures connections are closed cleanly after use.
        Alternatives: Keep a single long-lived connection.
        """

        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
        finally:
            connection.close()