"""Runtime settings, read from COMPILE_CACHE_* environment variables.

Contract:
- Inputs: Environment variables, .env file, explicit overrides (CLI flags)
- Outputs: Validated CacheSettings
- Side Effects: None (read-only)
"""
import hashlib
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

from compile_cache.models.errors import ConfigError


ENV_PREFIX = "COMPILE_CACHE_"


class CacheSettings(BaseSettings):
    """Knobs for fingerprinting, cache decisions and the container run.

    Example:
        >>> settings = CacheSettings()
        >>> assert settings.listing_name == "listing"
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    listing_name: str = "listing"
    hash_algorithm: str = "md5"
    hash_workers: int = Field(default=1, ge=1)
    shell: str = "/bin/sh"
    wait_timeout: Optional[float] = None  # seconds; None waits forever
    include_stderr: bool = False
    remove_container: bool = True
    rebuild_on_unusable_archive: bool = False
    fail_on_nonzero_exit: bool = True

    @field_validator('listing_name')
    @classmethod
    def validate_listing_name(cls, v: str) -> str:
        """Listing must be a plain file name at the input root."""
        if not v or '/' in v or '\\' in v or v in ('.', '..'):
            raise ValueError('listing_name must be a plain file name')
        return v

    @field_validator('hash_algorithm')
    @classmethod
    def validate_hash_algorithm(cls, v: str) -> str:
        v = v.lower()
        # shake_* digests need an explicit length
        if v not in hashlib.algorithms_available or v.startswith('shake'):
            raise ValueError(f'unsupported hash algorithm: {v}')
        return v

    @field_validator('wait_timeout')
    @classmethod
    def validate_wait_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError('wait_timeout must be positive')
        return v

    @classmethod
    def from_env(cls, **overrides) -> "CacheSettings":
        """
        Load settings from the environment and apply explicit overrides.

        Overrides with a value of None are ignored so CLI flags that were not
        given fall back to the environment.

        Raises:
            ConfigError: a variable or override has an invalid value
        """
        values = {k: v for k, v in overrides.items() if v is not None}
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {e}") from e
