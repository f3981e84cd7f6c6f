"""Summary: Google OAuth helpers for Gmail sending.

Importance: Generates authorization URLs and token exchanges without extra dependencies.
Alternatives: Use google-auth-oauthlib for OAuth flows.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from autoply.config import AppConfig

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_SCOPES = " ".join(
    [
        "https://www.googleapis.com/auth/gmail.send",
        "https://www.googleapis.com/auth/gmail.settings.basic",
    ]
)


@dataclass(frozen=True)
class OAuthTokenResult:
    """Summary: Normalized OAuth token response data.

    Importance: Provides a consistent token representation for storage and refresh logic.
    Alternatives: Store the raw provider response without normalization.
    """

    access_token: str
    refresh_token: str | None
    expires_at: str | None
    token_type: str | None
    raw: dict[str, Any]

    @staticmethod
    def from_response(payload: dict[str, Any]) -> "OAuthTokenResult":
        expires_in = payload.get("expires_in")
        expires_at = None
        if isinstance(expires_in, int):
            expires_at = (datetime.utcnow() + timedelta(seconds=expires_in)).isoformat()
        return OAuthTokenResult(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
            token_type=payload.get("token_type"),
            raw=payload,
        )


def build_google_auth_url(config: AppConfig, state: str) -> str:
    """Summary: Build a Google OAuth authorization URL.

    Importance: The state carries the Telegram id so the callback can find the user.
    Alternatives: Store a random state server-side and map it to the user.
    """

    params = {
        "client_id": config.google_client_id,
        "redirect_uri": config.google_redirect_uri,
        "response_type": "code",
        "scope": GOOGLE_SCOPES,
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urllib.parse.urlencode(params)}"


def exchange_oauth_code(config: AppConfig, code: str) -> OAuthTokenResult:
    """Summary: Exchange an authorization code for tokens.

    Importance: A refresh token is mandatory; sending happens long after consent.
    Alternatives: Re-run consent whenever the access token expires.
    """

    _ensure_oauth_config(config)
    payload = {
        "client_id": config.google_client_id,
        "client_secret": config.google_client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": config.google_redirect_uri,
    }
    result = OAuthTokenResult.from_response(_post_form(config.google_token_url, payload))
    if not result.refresh_token:
        raise RuntimeError("Token exchange failed: no refresh token returned")
    return result


def refresh_oauth_token(config: AppConfig, refresh_token: str) -> OAuthTokenResult:
    _ensure_oauth_config(config)
    return OAuthTokenResult.from_response(
        _post_form(config.google_token_url, _refresh_payload(config, refresh_token))
    )


def _refresh_payload(config: AppConfig, refresh_token: str) -> dict[str, str]:
    return {
        "client_id": config.google_client_id,
        "client_secret": config.google_client_secret,
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
    }


def _ensure_oauth_config(config: AppConfig) -> None:
    if not config.google_client_id or not config.google_client_secret:
        raise ValueError("Missing Google OAuth client credentials")


def _post_form(url: str, payload: dict[str, str]) -> dict[str, Any]:
    """Summary: Send a form-encoded POST request and parse JSON.

    Importance: Avoids new dependencies while supporting OAuth exchanges.
    Alternatives: Use requests or a provider SDK.
    """

    data = urllib.parse.urlencode(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8")
        raise RuntimeError(f"Token exchange failed: {error_body or exc.reason}") from exc
    return json.loads(raw)
