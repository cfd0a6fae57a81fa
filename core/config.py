"""
core/config.py -- WordLists settings, read once from the environment and .env.

Every tunable lives on Settings: signing and fingerprint secrets, token
lifetime, bcrypt costs, the word quota, the invalid-token policy, rate
limits, and the host/origin allow-lists. Code reads them through
get_settings(), never through os.environ.

  get_settings()      lru_cache singleton. Tests that need a different value
                      monkeypatch the attribute on the cached instance.
  Settings            pydantic-settings model; SECRET_KEY maps to secret_key,
                      WORD_SUBMISSION_LIMIT to word_submission_limit, etc.
  validate_secret_key runs after env resolution and fills the derived
                      defaults (blacklist secret, secure cookies).

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing and
       the HMAC token fingerprint both rely on key entropy.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or wordbank/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("wordlists.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'wordlists.db'}"

_SEVEN_DAYS = 60 * 60 * 24 * 7


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Key for the HMAC fingerprint stored in token_blacklist. Falls back to
    # secret_key when unset.
    token_blacklist_secret: str = ""
    # None means "secure whenever not in debug mode".
    secure_cookies: Optional[bool] = None
    token_expire_seconds: int = _SEVEN_DAYS
    # When True, a request carrying an invalid, expired or revoked token may
    # still authenticate with name/password fields in its body. When False the
    # rejected token ends resolution.
    credential_fallback_on_invalid_token: bool = False
    user_password_rounds: int = 10
    list_password_rounds: int = 12
    blacklist_purge_interval_seconds: int = 6 * 60 * 60

    # ------------------------------------------------------------------
    # Word submission
    # ------------------------------------------------------------------

    word_submission_limit: int = 20

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7] and derive dependent defaults.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not self.token_blacklist_secret:
            self.token_blacklist_secret = self.secret_key
        if self.secure_cookies is None:
            self.secure_cookies = not self.debug
        if self.word_submission_limit < 1:
            raise ValueError("WORD_SUBMISSION_LIMIT must be at least 1.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
