"""Summary: Application services around the core chat workflow.

Importance: Owns users and CVs, Gmail credentials, dispatch, and AI auditing.
Alternatives: Build a full service layer with dependency injection framework.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from autoply.ai import estimate_tokens
from autoply.config import AppConfig
from autoply.errors import DispatchFailed, UnsupportedFormat
from autoply.extract import DocumentTextExtractor, is_supported, normalize_filename
from autoply.gmail import Attachment, GmailClient, OutgoingEmail
from autoply.models import AiRequest, AiResponse, Application, PendingAction, User
from autoply.oauth import OAuthTokenResult, exchange_oauth_code, refresh_oauth_token
from autoply.storage.documents import LocalDocumentStore
from autoply.storage.sqlite_store import SqliteStore, StoredApplication, StoredUser
from autoply.token_codec import TokenCodec

logger = logging.getLogger(__name__)

GmailClientFactory = Callable[[str], GmailClient]


@dataclass(frozen=True)
class AiAuditLog:
    """Summary: Stores AI request and response metadata for one model.

    Importance: Provides auditability for routing and generation calls.
    Alternatives: Rely solely on logs without persistence.
    """

    store: SqliteStore
    provider_name: str
    model_name: str

    def record(
        self,
        prompt: str,
        purpose: str,
        response_text: str,
        latency_ms: int,
        user_id: str | None = None,
    ) -> int:
        request = AiRequest(
            provider=self.provider_name,
            model=self.model_name,
            prompt=prompt,
            purpose=purpose,
            timestamp=datetime.utcnow(),
        )
        request_id = self.store.log_ai_request(request, user_id=user_id)
        self.store.log_ai_response(
            AiResponse(
                request_id=request_id,
                response_text=response_text,
                latency_ms=latency_ms,
                token_estimate=estimate_tokens(response_text),
            )
        )
        return request_id


@dataclass(frozen=True)
class UserService:
    """Summary: Manages user records and their uploaded CV.

    Importance: The CV bytes are the durable artifact; text is re-extracted per request.
    Alternatives: Cache extracted text next to the user record.
    """

    store: SqliteStore
    documents: LocalDocumentStore
    extractor: DocumentTextExtractor

    def get_or_create(self, telegram_id: str, first_name: str | None, last_name: str | None) -> StoredUser:
        return self.store.upsert_user(
            User(telegram_id=telegram_id, first_name=first_name, last_name=last_name)
        )

    def save_cv(self, user_id: int, data: bytes, media_type: str | None) -> str:
        """Summary: Store a new CV, replacing the pointer to any previous one.

        Importance: Rejects formats the extractor cannot read before storing anything.
        Alternatives: Accept any upload and fail later during extraction.
        """

        if not is_supported(media_type):
            raise UnsupportedFormat(media_type)
        key = self.documents.put(data, media_type)
        self.store.set_user_cv(user_id, key, media_type)
        logger.info("Saved CV %s for user %s.", key, user_id)
        return key

    def load_cv_text(self, user: StoredUser) -> str | None:
        if not user.cv_storage_key or not user.cv_media_type:
            return None
        data = self.documents.get(user.cv_storage_key)
        return self.extractor.extract(data, user.cv_media_type)


@dataclass(frozen=True)
class TokenService:
    """Summary: Stores Gmail OAuth tokens with basic obfuscation.

    Importance: Keeps access tokens fresh so dispatch never uses an expired credential.
    Alternatives: Use a secrets manager or encrypted database.
    """

    store: SqliteStore
    codec: TokenCodec
    config: AppConfig
    gmail_factory: GmailClientFactory

    def connect(self, user_id: int, code: str) -> list[str]:
        """Summary: Complete the OAuth callback for a user.

        Importance: Stores tokens and discovers the addresses the user may send from.
        Alternatives: Ask the user to type their sender address.
        """

        result = exchange_oauth_code(self.config, code)
        self.store_tokens(user_id, result)
        try:
            emails = self.gmail_factory(result.access_token).fetch_send_as_addresses()
        except RuntimeError:
            logger.exception("Failed to fetch send-as addresses for user %s.", user_id)
            emails = []
        self.store.set_send_as_emails(user_id, emails)
        logger.info("Connected Gmail for user %s (%s sender addresses).", user_id, len(emails))
        return emails

    def store_tokens(self, user_id: int, result: OAuthTokenResult) -> None:
        self.store.upsert_oauth_token(
            user_id=user_id,
            access_token=self.codec.encode(result.access_token),
            refresh_token=self.codec.encode(result.refresh_token) if result.refresh_token else None,
            expires_at=result.expires_at,
        )

    def is_connected(self, user_id: int) -> bool:
        return self.store.get_oauth_token(user_id) is not None

    def send_as_emails(self, user_id: int) -> list[str]:
        record = self.store.get_oauth_token(user_id)
        return list(record.send_as_emails) if record else []

    def get_access_token(self, user_id: int) -> str:
        """Summary: Return an access token, refreshing if it expires within a minute.

        Importance: Token freshness belongs to the mail side, not the chat core.
        Alternatives: Always refresh tokens before use.
        """

        record = self.store.get_oauth_token(user_id)
        if not record:
            raise ValueError("OAuth token not found")
        if not _expires_soon(record.expires_at):
            return self.codec.decode(record.access_token)
        if not record.refresh_token:
            raise ValueError("Refresh token not available")
        result = refresh_oauth_token(self.config, self.codec.decode(record.refresh_token))
        self.store_tokens(user_id, result)
        logger.info("Refreshed Gmail access token for user %s.", user_id)
        return result.access_token


@dataclass(frozen=True)
class ApplicationService:
    """Summary: Dispatches confirmed drafts through Gmail and records them.

    Importance: The only path by which an email leaves the system.
    Alternatives: Let the transport layer call Gmail directly.
    """

    store: SqliteStore
    documents: LocalDocumentStore
    tokens: TokenService
    gmail_factory: GmailClientFactory

    def dispatcher_for(self, user: StoredUser) -> Callable[[PendingAction], str]:
        return lambda pending: self.dispatch(user, pending)

    def dispatch(self, user: StoredUser, pending: PendingAction) -> str:
        """Summary: Send a confirmed draft with the user's CV attached.

        Importance: Failures before the send surface as DispatchFailed so the draft stays staged;
        once Gmail accepts the message the draft must clear, even if recording it fails.
        Alternatives: Retry automatically in the background.
        """

        if not user.cv_storage_key or not user.cv_media_type:
            raise DispatchFailed("User CV not found")
        from_address = self.sender_address(user)
        if not from_address:
            raise DispatchFailed("Please connect your Gmail first with /connect")
        try:
            access_token = self.tokens.get_access_token(user.id)
            attachment = Attachment(
                filename=normalize_filename(user.first_name, user.last_name, user.cv_media_type),
                content=self.documents.get(user.cv_storage_key),
                media_type=user.cv_media_type,
            )
            provider_message_id = self.gmail_factory(access_token).send(
                OutgoingEmail(
                    from_address=from_address,
                    to_address=pending.recipient_email,
                    subject=pending.subject,
                    body=pending.body,
                    attachment=attachment,
                )
            )
        except (RuntimeError, ValueError, OSError) as exc:
            raise DispatchFailed(str(exc)) from exc
        try:
            self.store.save_application(
                Application(
                    user_id=user.id,
                    job_summary=pending.subject,
                    subject=pending.subject,
                    body=pending.body,
                    sender_email=from_address,
                    recipient_email=pending.recipient_email,
                    cv_storage_key=user.cv_storage_key,
                    provider_message_id=provider_message_id,
                    sent_at=datetime.utcnow(),
                )
            )
        except Exception:
            logger.exception(
                "Email %s was sent but recording the application for user %s failed.",
                provider_message_id,
                user.id,
            )
        return provider_message_id

    def sender_address(self, user: StoredUser) -> str | None:
        if user.selected_email:
            return user.selected_email
        emails = self.tokens.send_as_emails(user.id)
        return emails[0] if emails else None

    def recent(self, user_id: int, limit: int = 5) -> list[StoredApplication]:
        return self.store.list_applications(user_id, limit)


def _expires_soon(expires_at: str | None) -> bool:
    if not expires_at:
        return False
    try:
        expires = datetime.fromisoformat(expires_at)
    except ValueError:
        return False
    return expires <= datetime.utcnow() + timedelta(seconds=60)
