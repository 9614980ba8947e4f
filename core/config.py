"""Application configuration for the LayerEdge node bot.

Central configuration module powered by Pydantic v2.  Settings are loaded
from environment variables (with ``.env`` file support) and may be
overridden from the command line in ``main.py``.

Key exports:
    BotSettings: Root settings model (instantiate once).
    BASE_DIR / CONFIG_DIR / LOGS_DIR: Canonical project paths.
"""

# pylint: disable=no-member

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Base Paths
# ---------------------------------------------------------------------------
BASE_DIR: Path = Path(__file__).parent.parent
"""Project root directory (parent of ``core/``)."""

CONFIG_DIR: Path = BASE_DIR / "config"
"""Directory containing the wallet and proxy files."""

LOGS_DIR: Path = BASE_DIR / "logs"
"""Directory for log output files."""

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36"
)

logger: logging.Logger = logging.getLogger(__name__)


class BotSettings(BaseSettings):
    """Root configuration model for the LayerEdge node bot.

    All fields can be set via environment variables or a ``.env`` file
    (for example ``REFERRAL_CODE=abc123`` or ``CYCLE_INTERVAL_SECONDS=600``).

    Section overview:
        * **Core** -- log level, verbose output.
        * **Files** -- wallet list, proxy list, registration log.
        * **API** -- base URL, referral code, request timeout, user agent.
        * **Scheduling** -- cycle interval and per-wallet failure delay.

    Retry backoff constants live in :mod:`core.requester`.
    """

    # Core
    log_level: str = "INFO"
    verbose: bool = True

    # Files
    # JSON array of {"address": ..., "privateKey": ...}
    wallets_file: str = str(CONFIG_DIR / "wallets.json")
    # One proxy per line (http://, socks4://, socks5://)
    proxies_file: str = str(CONFIG_DIR / "proxy.txt")
    # Append-only log of wallets created by --register
    registered_wallets_file: str = str(
        CONFIG_DIR / "registered_wallets.txt"
    )

    # API
    api_base_url: str = "https://referralapi.layeredge.io/api"
    referral_code: str = "knYyWnsE"
    request_timeout_seconds: int = Field(default=60, gt=0)
    user_agent: str = DEFAULT_USER_AGENT

    # Scheduling
    # Sleep after every full pass over the wallets (1 hour)
    cycle_interval_seconds: int = Field(default=3600, ge=0)
    # Pause after a wallet's sequence blew up
    wallet_failure_delay_seconds: int = Field(default=5, ge=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        return value.upper()
