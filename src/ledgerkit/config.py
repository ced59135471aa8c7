"""Configuration management for ledgerkit."""

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from ledgerkit.utils.date_parser import DEFAULT_DATE_FORMATS


@dataclass(frozen=True)
class LedgerSettings:
    """Tunables of the ledger engine.

    The strategy thresholds and the batch limit mirror the document store
    the engine was built against (500 writes per atomic batch).
    """

    max_batch_size: int = 500
    serial_threshold: int = 50
    batched_threshold: int = 500
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 5.0
    wave_pause: float = 0.1
    balance_tolerance: Decimal = Decimal("0.01")
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS
    log_level: str = "INFO"
    log_format: str = "console"

    @classmethod
    def from_env(cls) -> "LedgerSettings":
        """Create settings from LEDGERKIT_* environment variables."""
        defaults = cls()
        formats = os.getenv("LEDGERKIT_DATE_FORMATS")
        return cls(
            max_batch_size=int(os.getenv("LEDGERKIT_MAX_BATCH_SIZE", defaults.max_batch_size)),
            serial_threshold=int(os.getenv("LEDGERKIT_SERIAL_THRESHOLD", defaults.serial_threshold)),
            batched_threshold=int(os.getenv("LEDGERKIT_BATCHED_THRESHOLD", defaults.batched_threshold)),
            max_retries=int(os.getenv("LEDGERKIT_MAX_RETRIES", defaults.max_retries)),
            retry_base_delay=float(os.getenv("LEDGERKIT_RETRY_BASE_DELAY", defaults.retry_base_delay)),
            retry_max_delay=float(os.getenv("LEDGERKIT_RETRY_MAX_DELAY", defaults.retry_max_delay)),
            wave_pause=float(os.getenv("LEDGERKIT_WAVE_PAUSE", defaults.wave_pause)),
            balance_tolerance=Decimal(os.getenv("LEDGERKIT_BALANCE_TOLERANCE", str(defaults.balance_tolerance))),
            date_formats=tuple(f.strip() for f in formats.split("|")) if formats else defaults.date_formats,
            log_level=os.getenv("LEDGERKIT_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("LEDGERKIT_LOG_FORMAT", defaults.log_format),
        )


@lru_cache
def get_settings() -> LedgerSettings:
    """Get cached settings instance."""
    return LedgerSettings.from_env()


def resolve_settings(settings: Optional[LedgerSettings]) -> LedgerSettings:
    return settings if settings is not None else get_settings()
