"""Runtime configuration for the Spendwise service."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Final

import yaml

LOG = logging.getLogger(__name__)

CONFIG_ENV: Final[str] = "SPENDWISE_CONFIG"
DEV_JWT_SECRET: Final[str] = "spendwise-dev-secret-change-me"
DEFAULT_DATABASE_URL: Final[str] = f"sqlite:///{Path.cwd() / 'spendwise.db'}"

_ENV_KEYS: Final[dict[str, str]] = {
    "database_url": "SPENDWISE_DATABASE_URL",
    "jwt_secret": "SPENDWISE_JWT_SECRET",
    "jwt_algorithm": "SPENDWISE_JWT_ALGORITHM",
    "token_ttl_hours": "SPENDWISE_TOKEN_TTL_HOURS",
    "bcrypt_rounds": "SPENDWISE_BCRYPT_ROUNDS",
    "cors_origins": "SPENDWISE_CORS_ORIGINS",
}


@dataclass(frozen=True)
class Settings:
    """Immutable settings shared by the store, authenticator and router.

    Attributes:
      database_url: SQLAlchemy URL of the relational store.
      jwt_secret: HMAC key used to sign bearer tokens.
      jwt_algorithm: JWT signing algorithm.
      token_ttl_hours: Lifetime of issued tokens.
      bcrypt_rounds: bcrypt work factor (log2 rounds, 4..31).
      cors_origins: Origins allowed by the CORS middleware.
    """

    database_url: str = DEFAULT_DATABASE_URL
    jwt_secret: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = 24
    bcrypt_rounds: int = 12
    cors_origins: tuple[str, ...] = field(default=("*",))

    def __post_init__(self) -> None:
        if self.token_ttl_hours <= 0:
            raise ValueError("token_ttl_hours must be positive")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        if not self.jwt_secret:
            raise ValueError("jwt_secret must not be empty")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> Settings:
        """Build settings from a mapping, rejecting unknown keys."""

        known = {item.name for item in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        coerced = {key: _coerce(key, value) for key, value in values.items()}
        return replace(cls(), **coerced)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Load settings from an optional YAML file overlaid by environment variables.

        Args:
          environ: Mapping used instead of :data:`os.environ`, handy in tests.

        Returns:
          The resolved :class:`Settings`.

        Raises:
          ValueError: If a value cannot be coerced or a key is unknown.
        """

        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        config_path = env.get(CONFIG_ENV)
        if config_path:
            values.update(load_yaml_config(config_path))
        for key, env_name in _ENV_KEYS.items():
            raw = env.get(env_name)
            if raw is not None and raw.strip():
                values[key] = raw.strip()
        settings = cls.from_mapping(values)
        if settings.jwt_secret == DEV_JWT_SECRET:
            LOG.warning("Using the development JWT secret; set %s in production", _ENV_KEYS["jwt_secret"])
        return settings


def load_yaml_config(path: Path | str) -> dict[str, Any]:
    """Read a YAML mapping of settings from ``path``."""

    with Path(path).open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return payload


def _coerce(key: str, value: Any) -> Any:
    if key in {"token_ttl_hours", "bcrypt_rounds"}:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be an integer, got {value!r}") from exc
    if key == "cors_origins":
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",")]
        else:
            items = [str(item).strip() for item in value]
        return tuple(item for item in items if item)
    return str(value)


__all__ = ["Settings", "load_yaml_config"]
