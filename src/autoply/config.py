"""Summary: Application configuration for Autoply.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for models, storage, and integrations.

    Importance: Ensures all services derive settings from a single source of truth.
    Alternatives: Read environment variables ad hoc inside each module.
    """

    db_path: str
    document_dir: str
    ai_provider: str
    openrouter_api_key: str | None
    openrouter_base_url: str
    light_model: str
    heavy_model: str
    telegram_bot_token: str
    telegram_api_url: str
    google_client_id: str
    google_client_secret: str
    google_redirect_uri: str
    google_token_url: str
    gmail_api_base_url: str
    token_secret: str
    history_limit: int = 20
    generation_max_steps: int = 5
    api_host: str = "127.0.0.1"
    api_port: int = 3000

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps all variables defined in config defaults while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            db_path=os.getenv("AUTOPLY_DB_PATH", defaults["db_path"]),
            document_dir=os.getenv("AUTOPLY_DOCUMENT_DIR", defaults["document_dir"]),
            ai_provider=os.getenv("AUTOPLY_AI_PROVIDER", defaults["ai_provider"]),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY")
            or defaults["openrouter_api_key"]
            or None,
            openrouter_base_url=os.getenv("OPENROUTER_BASE_URL", defaults["openrouter_base_url"]),
            light_model=os.getenv("OPENROUTER_LIGHT_MODEL", defaults["light_model"]),
            heavy_model=os.getenv("OPENROUTER_HEAVY_MODEL", defaults["heavy_model"]),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", defaults["telegram_bot_token"]),
            telegram_api_url=os.getenv("TELEGRAM_API_URL", defaults["telegram_api_url"]),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID", defaults["google_client_id"]),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", defaults["google_client_secret"]),
            google_redirect_uri=os.getenv("GOOGLE_REDIRECT_URI", defaults["google_redirect_uri"]),
            google_token_url=os.getenv("GOOGLE_TOKEN_URL", defaults["google_token_url"]),
            gmail_api_base_url=os.getenv("GMAIL_API_BASE_URL", defaults["gmail_api_base_url"]),
            token_secret=os.getenv("AUTOPLY_TOKEN_SECRET", defaults["token_secret"]),
            history_limit=int(os.getenv("AUTOPLY_HISTORY_LIMIT", defaults["history_limit"])),
            generation_max_steps=int(
                os.getenv("AUTOPLY_GENERATION_MAX_STEPS", defaults["generation_max_steps"])
            ),
            api_host=os.getenv("AUTOPLY_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("PORT", defaults["api_port"])),
        )


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets out of code while supporting local workflows.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip().strip('"').strip("'")
        os.environ.setdefault(key.strip(), value)
