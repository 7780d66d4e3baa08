"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.

The settings object is built once by each entrypoint and handed to the
components it wires together; components never read the environment.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """GhostInbox settings loaded from environment variables.

    Environment Variables:
        DOMAIN: Alias domain (aliases are <name>@DOMAIN)
        DESTINATION_MAILBOX: The real mailbox every alias relays to
        ALIAS_DATABASE_URL: SQLAlchemy URL for the alias/settings tables
        SECURITY_DATABASE_URL: SQLAlchemy URL for the IP ledger tables
        IP_WHITELIST: JSON list of IPs or CIDRs exempt from mitigation
        SENDMAIL_PATH: Local MTA submission binary
        FIREWALL_ENABLED: Enforce bans with iptables (default True)
        LOG_LEVEL: Logging level (default INFO)
        SECURITY_LOG_FILE: Optional file receiving security log lines
        ADMIN_API_TOKEN: Shared token required by the admin API when set
        ADMIN_API_HOST, ADMIN_API_PORT: Admin API bind address
    """

    # Relay
    DOMAIN: str = "example.com"
    DESTINATION_MAILBOX: str = "you@example.com"
    DEFAULT_WILDCARD_ENABLED: bool = True

    # Storage
    ALIAS_DATABASE_URL: str = "sqlite:////data/aliases.db"
    SECURITY_DATABASE_URL: str = "sqlite:////data/aliases.db"

    # Email rate limits per IP
    EMAIL_LIMIT_PER_MINUTE: int = 10
    EMAIL_LIMIT_PER_HOUR: int = 50
    EMAIL_LIMIT_PER_DAY: int = 200

    # Connection rate limits per IP
    CONNECTION_LIMIT_PER_MINUTE: int = 20
    CONNECTION_LIMIT_PER_HOUR: int = 100

    # Ban tiers (seconds)
    BAN_DURATION_LIGHT: int = 1800
    BAN_DURATION_MEDIUM: int = 7200
    BAN_DURATION_HEAVY: int = 86400
    BAN_EXTENSION_FACTOR: float = 1.5

    # Permanent ban heuristic
    CRITICAL_EMAIL_BURST: int = 100
    CRITICAL_CONNECTION_BURST: int = 200
    CRITICAL_BURST_WINDOW: int = 300
    REPEAT_OFFENDER_BAN_COUNT: int = 3
    PERSISTENT_VIOLATION_COUNT: int = 10
    RAPID_VIOLATION_COUNT: int = 5
    RAPID_VIOLATION_WINDOW: int = 86400

    IP_WHITELIST: List[str] = ["127.0.0.1", "::1"]

    # Collaborators
    SENDMAIL_PATH: str = "/usr/sbin/sendmail"
    FIREWALL_ENABLED: bool = True
    IPTABLES_PATH: str = "iptables"

    # Application
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    SECURITY_LOG_FILE: Optional[str] = None
    ADMIN_API_TOKEN: Optional[str] = None
    ADMIN_API_HOST: str = "127.0.0.1"
    ADMIN_API_PORT: int = 8025

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Only entrypoints call this. Call get_settings.cache_clear() to reload.
    """
    return Settings()
