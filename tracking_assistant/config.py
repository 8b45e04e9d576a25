"""Environment-driven settings for the gateway.

Values are read once by :meth:`GatewaySettings.from_env` and passed around
explicitly; nothing else in the package reads carrier or OpenAI credentials
from the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(env: Mapping[str, str], name: str) -> tuple[str, ...]:
    raw = env.get(name) or ""
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class UpsSettings:
    client_id: str | None = None
    client_secret: str | None = None
    base_url: str = "https://wwwcie.ups.com"
    cache_token: bool = False


@dataclass(frozen=True)
class UspsSettings:
    user_id: str | None = None
    base_url: str = "https://secure.shippingapis.com/ShippingAPI.dll"


@dataclass(frozen=True)
class RunSettings:
    """Polling policy for assistant runs."""

    poll_interval: float = 0.5
    max_polls: int = 240
    timeout_seconds: float = 120.0


@dataclass(frozen=True)
class GatewaySettings:
    openai_api_key: str | None = None
    assistant_id: str | None = None
    analytics_assistant_id: str | None = None
    database_url: str | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    carrier_http_timeout: float = 30.0
    ups: UpsSettings = field(default_factory=UpsSettings)
    usps: UspsSettings = field(default_factory=UspsSettings)
    run: RunSettings = field(default_factory=RunSettings)
    cors_origins: tuple[str, ...] = ()
    chat_max_message_length: int = 5000

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "GatewaySettings":
        """Build settings from ``env`` (defaults to ``os.environ``)."""

        env = os.environ if env is None else env
        return cls(
            openai_api_key=env.get("OPENAI_API_KEY"),
            assistant_id=env.get("OPENAI_ASSISTANT_ID"),
            analytics_assistant_id=env.get("OPENAI_ANALYTICS_ASSISTANT_ID"),
            database_url=env.get("DATABASE_URL"),
            db_pool_min_size=int(env.get("DB_POOL_MIN_SIZE", "1")),
            db_pool_max_size=int(env.get("DB_POOL_MAX_SIZE", "10")),
            carrier_http_timeout=float(env.get("CARRIER_HTTP_TIMEOUT", "30")),
            ups=UpsSettings(
                client_id=env.get("UPS_CLIENT_ID"),
                client_secret=env.get("UPS_CLIENT_SECRET"),
                base_url=env.get("UPS_BASE_URL", UpsSettings.base_url).rstrip("/"),
                cache_token=_env_bool(env, "UPS_TOKEN_CACHE"),
            ),
            usps=UspsSettings(
                user_id=env.get("USPS_USER_ID"),
                base_url=env.get("USPS_BASE_URL", UspsSettings.base_url),
            ),
            run=RunSettings(
                poll_interval=float(env.get("RUN_POLL_INTERVAL", "0.5")),
                max_polls=int(env.get("RUN_MAX_POLLS", "240")),
                timeout_seconds=float(env.get("RUN_TIMEOUT_SECONDS", "120")),
            ),
            cors_origins=_env_list(env, "CORS_ORIGINS"),
            chat_max_message_length=int(env.get("CHAT_MAX_MESSAGE_LENGTH", "5000")),
        )

    def configured_secrets(self) -> dict[str, bool]:
        """Report which credentials are present without exposing them."""

        return {
            "OPENAI_API_KEY": bool(self.openai_api_key),
            "DATABASE_URL": bool(self.database_url),
            "UPS_CLIENT_ID": bool(self.ups.client_id),
            "UPS_CLIENT_SECRET": bool(self.ups.client_secret),
            "USPS_USER_ID": bool(self.usps.user_id),
        }
