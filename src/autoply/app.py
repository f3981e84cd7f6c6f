"""Summary: Application factory wiring core services.

Importance: Centralizes dependency creation for the API, webhook, and CLI.
Alternatives: Instantiate services manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass

from autoply.ai import AiProvider, AiProviderFactory
from autoply.config import AppConfig
from autoply.extract import DocumentTextExtractor
from autoply.generator import ApplicationGenerator
from autoply.gmail import GmailClient
from autoply.history import ConversationHistoryStore
from autoply.orchestrator import Orchestrator
from autoply.pending import PendingActionStore
from autoply.router import IntentRouter
from autoply.services import AiAuditLog, ApplicationService, TokenService, UserService
from autoply.storage.documents import LocalDocumentStore
from autoply.storage.sqlite_store import SqliteStore
from autoply.telegram import TelegramBot, TelegramClient
from autoply.token_codec import TokenCodec


@dataclass(frozen=True)
class AppContext:
    """Summary: Shared services for one running process.

    Importance: The pending store lives here so every entrypoint sees the same drafts.
    Alternatives: Rebuild dependencies for every request.
    """

    config: AppConfig
    store: SqliteStore
    documents: LocalDocumentStore
    history: ConversationHistoryStore
    pending: PendingActionStore
    orchestrator: Orchestrator
    users: UserService
    tokens: TokenService
    applications: ApplicationService

    def telegram_bot(self, client: TelegramClient | None = None) -> TelegramBot:
        """Summary: Build the Telegram handler on top of this context.

        Importance: Tests pass a fake client; production talks to the Bot API.
        Alternatives: Construct the bot eagerly in build_context.
        """

        return TelegramBot(
            client=client
            or TelegramClient(self.config.telegram_bot_token, self.config.telegram_api_url),
            orchestrator=self.orchestrator,
            users=self.users,
            tokens=self.tokens,
            applications=self.applications,
            config=self.config,
        )


def build_context(
    config: AppConfig,
    light_provider: AiProvider | None = None,
    heavy_provider: AiProvider | None = None,
) -> AppContext:
    """Summary: Build shared context from configuration.

    Importance: Provides a single construction path for the application.
    Alternatives: Use a dependency injection container.
    """

    store = SqliteStore(config.db_path)
    store.initialize()
    documents = LocalDocumentStore(config.document_dir)
    factory = AiProviderFactory(config)
    light = light_provider or factory.build_light()
    heavy = heavy_provider or factory.build_heavy()

    def gmail_factory(access_token: str) -> GmailClient:
        return GmailClient(access_token, config.gmail_api_base_url)

    history = ConversationHistoryStore(store=store, limit=config.history_limit)
    pending = PendingActionStore()
    router = IntentRouter(
        provider=light,
        audit=AiAuditLog(store=store, provider_name=config.ai_provider, model_name=light.model),
    )
    generator = ApplicationGenerator(
        provider=heavy,
        max_steps=config.generation_max_steps,
        audit=AiAuditLog(store=store, provider_name=config.ai_provider, model_name=heavy.model),
    )
    tokens = TokenService(
        store=store,
        codec=TokenCodec(config.token_secret),
        config=config,
        gmail_factory=gmail_factory,
    )
    return AppContext(
        config=config,
        store=store,
        documents=documents,
        history=history,
        pending=pending,
        orchestrator=Orchestrator(
            history=history, router=router, generator=generator, pending=pending
        ),
        users=UserService(store=store, documents=documents, extractor=DocumentTextExtractor()),
        tokens=tokens,
        applications=ApplicationService(
            store=store, documents=documents, tokens=tokens, gmail_factory=gmail_factory
        ),
    )
