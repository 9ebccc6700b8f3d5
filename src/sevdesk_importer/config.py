"""
Configuration management (SSOT).

All configuration keys for the importer are defined here; no other module
should invent config keys.

Key invariants:
- The API token is never part of repr() output or log lines
- Cache TTL applies to contact directory and address entries alike
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_BASE_URL = "https://my.sevdesk.de/api/v1"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class SevdeskConfig:
    """sevDesk API configuration."""

    base_url: str = DEFAULT_BASE_URL
    token: str = field(default="", repr=False)
    # Request timeout (seconds); a timeout terminates the current import
    timeout_seconds: int = 30
    # Transport-level retries for 429/5xx responses
    max_retries: int = 3
    backoff_factor: float = 0.5

    def __repr__(self) -> str:
        masked = "***" if self.token else ""
        return (
            f"SevdeskConfig(base_url={self.base_url!r}, token={masked!r}, "
            f"timeout_seconds={self.timeout_seconds}, max_retries={self.max_retries})"
        )


@dataclass
class CacheConfig:
    """Shared contact/address cache settings."""

    # Entries older than this are treated as absent (15 minutes)
    ttl_seconds: int = 900
    # Page size used when paginating the contact list
    contact_page_size: int = 100


@dataclass
class VoucherDefaults:
    """Fixed voucher fields used when saving a draft."""

    # Used when no TAXRATE was extracted
    default_tax_rate: int = 19
    credit_debit: str = "C"
    # 50 = draft
    status: str = "50"


@dataclass
class Config:
    """Application configuration (SSOT)."""

    sevdesk: SevdeskConfig = field(default_factory=SevdeskConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    voucher: VoucherDefaults = field(default_factory=VoucherDefaults)

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.sevdesk.base_url:
            errors.append("sevdesk.base_url is required")
        if not self.sevdesk.token:
            errors.append("sevdesk.token is required")
        if self.sevdesk.timeout_seconds <= 0:
            errors.append("sevdesk.timeout_seconds must be positive")
        if self.cache.ttl_seconds < 0:
            errors.append("cache.ttl_seconds must not be negative")
        if self.cache.contact_page_size <= 0:
            errors.append("cache.contact_page_size must be positive")

        return errors


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - SEVDESK_URL
    - SEVDESK_TOKEN
    - SEVDESK_TIMEOUT (request timeout in seconds)
    - SEVDESK_CACHE_TTL (cache expiry in seconds)
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    sevdesk_data = data.get("sevdesk") or {}
    timeout = sevdesk_data.get("timeout_seconds", 30)
    timeout_env = os.environ.get("SEVDESK_TIMEOUT", "")
    if timeout_env:
        try:
            timeout = int(timeout_env)
        except ValueError:
            raise ConfigValidationError(f"SEVDESK_TIMEOUT is not an integer: {timeout_env!r}")

    sevdesk = SevdeskConfig(
        base_url=os.environ.get("SEVDESK_URL", sevdesk_data.get("base_url", DEFAULT_BASE_URL)),
        token=os.environ.get("SEVDESK_TOKEN", sevdesk_data.get("token", "")),
        timeout_seconds=timeout,
        max_retries=sevdesk_data.get("max_retries", 3),
        backoff_factor=sevdesk_data.get("backoff_factor", 0.5),
    )

    cache_data = data.get("cache") or {}
    ttl = cache_data.get("ttl_seconds", 900)
    ttl_env = os.environ.get("SEVDESK_CACHE_TTL", "")
    if ttl_env:
        try:
            ttl = int(ttl_env)
        except ValueError:
            raise ConfigValidationError(f"SEVDESK_CACHE_TTL is not an integer: {ttl_env!r}")

    cache = CacheConfig(
        ttl_seconds=ttl,
        contact_page_size=cache_data.get("contact_page_size", 100),
    )

    voucher_data = data.get("voucher") or {}
    voucher = VoucherDefaults(
        default_tax_rate=voucher_data.get("default_tax_rate", 19),
        credit_debit=voucher_data.get("credit_debit", "C"),
        status=str(voucher_data.get("status", "50")),
    )

    return Config(sevdesk=sevdesk, cache=cache, voucher=voucher)


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# sevDesk Voucher Importer Configuration

sevdesk:
  base_url: "https://my.sevdesk.de/api/v1"
  token: "YOUR_SEVDESK_TOKEN"             # Or set SEVDESK_TOKEN
  timeout_seconds: 30                      # Per-request timeout
  max_retries: 3                           # Transport retries on 429/5xx
  backoff_factor: 0.5

# Shared contact/address cache
cache:
  ttl_seconds: 900                         # 15 minutes
  contact_page_size: 100

# Draft voucher defaults
voucher:
  default_tax_rate: 19                     # Used when no tax rate was extracted
  credit_debit: "C"
  status: "50"                             # 50 = draft
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
