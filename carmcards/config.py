"""Configuration models for Carmcards."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal


StorageBackend = Literal["memory", "sqlalchemy"]

_TRUTHY = {"1", "true", "yes"}


@dataclass(slots=True)
class StorageConfig:
    """Configure how collectors, possessions and trades are persisted."""

    backend: StorageBackend = "memory"
    dsn: str | None = None
    echo_sql: bool = False

    def resolve_dsn(self) -> str | None:
        if self.dsn:
            return self.dsn
        if self.backend == "sqlalchemy":
            return "sqlite+aiosqlite:///./carmcards.db"
        return None


@dataclass(slots=True)
class DrawConfig:
    """Rules controlling how collectors receive cards."""

    cooldown_seconds: int = 86400
    foil_chance: float = 0.1
    cards_per_page: int = 10


@dataclass(slots=True)
class TradeConfig:
    """Trade negotiation policy.

    ``invite_ttl_seconds`` of None keeps pending trades until they are
    executed or cancelled.
    """

    invite_ttl_seconds: int | None = None


@dataclass(slots=True)
class CarmcardsConfig:
    """Top-level configuration container."""

    bot_token: str = ""
    storage: StorageConfig = field(default_factory=StorageConfig)
    draw: DrawConfig = field(default_factory=DrawConfig)
    trade: TradeConfig = field(default_factory=TradeConfig)
    catalog_path: str | None = None
    rng_seed: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "CarmcardsConfig":
        """Create config from environment variables prefixed with CARMCARDS_."""
        prefix = "CARMCARDS_"
        storage_backend = os.getenv(f"{prefix}STORAGE_BACKEND", "memory")
        if storage_backend not in ("memory", "sqlalchemy"):
            raise ValueError(f"Unsupported {prefix}STORAGE_BACKEND '{storage_backend}'")

        draw_config = DrawConfig(
            cooldown_seconds=int(os.getenv(f"{prefix}DRAW_COOLDOWN", "86400")),
            foil_chance=float(os.getenv(f"{prefix}DRAW_FOIL_CHANCE", "0.1")),
            cards_per_page=int(os.getenv(f"{prefix}CARDS_PER_PAGE", "10")),
        )

        ttl = os.getenv(f"{prefix}TRADE_INVITE_TTL")
        trade_config = TradeConfig(invite_ttl_seconds=int(ttl) if ttl else None)

        return cls(
            bot_token=os.getenv(f"{prefix}BOT_TOKEN", ""),
            storage=StorageConfig(
                backend=storage_backend,
                dsn=os.getenv(f"{prefix}STORAGE_DSN"),
                echo_sql=os.getenv(f"{prefix}STORAGE_ECHO_SQL", "false").lower() in _TRUTHY,
            ),
            draw=draw_config,
            trade=trade_config,
            catalog_path=os.getenv(f"{prefix}CATALOG_PATH"),
            rng_seed=(
                int(os.getenv(f"{prefix}RNG_SEED")) if os.getenv(f"{prefix}RNG_SEED") else None
            ),
            log_level=os.getenv(f"{prefix}LOG_LEVEL", "INFO").upper(),
        )
