"""
Environment-driven settings for switchyard applications.
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field

_TRUTHY = ("1", "true", "yes", "on")


class RedisConfig(BaseModel):
    """Connection settings for the Redis-backed cache."""

    host: str = Field("localhost", description="Redis server host")
    port: int = Field(6379, description="Redis server port")
    db: int = Field(0, description="Redis database number")
    password: Optional[str] = Field(None, description="Redis password, if the server requires one")

    @property
    def url(self) -> str:
        """Connection URL in ``redis://[:password@]host:port/db`` form."""
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


class AppConfig(BaseModel):
    """Application settings."""

    debug: bool = Field(False, description="Include exception details in 500 responses")
    cache_prefix: str = Field("switchyard", description="Namespace prepended to every cache key")
    redis: RedisConfig = Field(default_factory=RedisConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """Build settings from environment variables.

        Reads ``APP_DEBUG``, ``CACHE_PREFIX``, ``REDIS_HOST``, ``REDIS_PORT``,
        ``REDIS_DB`` and ``REDIS_PASSWORD``. Unset variables keep their
        defaults.

        Raises:
            pydantic.ValidationError: If a numeric variable is not a number.
        """
        env = os.environ if environ is None else environ

        redis = {
            field: env[var]
            for field, var in (
                ("host", "REDIS_HOST"),
                ("port", "REDIS_PORT"),
                ("db", "REDIS_DB"),
                ("password", "REDIS_PASSWORD"),
            )
            if env.get(var)
        }

        settings = {"redis": RedisConfig(**redis)}
        if "APP_DEBUG" in env:
            settings["debug"] = env["APP_DEBUG"].strip().lower() in _TRUTHY
        if env.get("CACHE_PREFIX"):
            settings["cache_prefix"] = env["CACHE_PREFIX"]

        return cls(**settings)
