"""
Centralized configuration with environment variable overrides.

Business contact details, coordinator phone numbers, session timeouts
and order-id settings are configurable here. Nothing in the dialogue
or order logic hardcodes them.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from order_engine.logging_context import ConversationIdFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Business-facing settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "Avellano")
    service_line: str = os.getenv("BUSINESS_SERVICE_LINE", "310-232-5151")
    home_catalog_url: str = os.getenv("HOME_CATALOG_URL", "https://wa.me/c/573102325151")
    closing_message: str = os.getenv(
        "CLOSING_MESSAGE",
        "💛 Gracias por contactar a *Avellano*.\n"
        "¡Recuerda que alimentar es amar! 🐔\n"
        "Te esperamos pronto.",
    )


@dataclass(frozen=True)
class CoordinatorConfig:
    """Contact numbers for each coordinator the routing table can assign."""

    wholesaler_phone: str = os.getenv("WHOLESALER_COORDINATOR_PHONE", "573214057410")
    horeca_phone: str = os.getenv("HORECA_EXECUTIVE_PHONE", "573138479027")
    mass_market_phone: str = os.getenv("MASS_MARKET_COORDINATOR_PHONE", "573232747647")
    commercial_director_phone: str = os.getenv("COMMERCIAL_DIRECTOR_PHONE", "573108540251")


@dataclass(frozen=True)
class SessionConfig:
    """Dialogue session limits."""

    idle_timeout_minutes: float = _safe_float("SESSION_IDLE_TIMEOUT_MINUTES", "10")
    max_message_length: int = _safe_int("MAX_MESSAGE_LENGTH", "1000")


@dataclass(frozen=True)
class OrderConfig:
    """Order identifier generation settings."""

    id_prefix: str = os.getenv("ORDER_ID_PREFIX", "AV")
    max_id_attempts: int = _safe_int("ORDER_ID_MAX_ATTEMPTS", "5")
    inbox_limit: int = _safe_int("NOTIFICATION_INBOX_LIMIT", "50")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    coordinators: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    orders: OrderConfig = field(default_factory=OrderConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    bot_name: str = os.getenv("BOT_NAME", "avellano-order-bot")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.session.idle_timeout_minutes <= 0:
        raise ValueError(
            "SESSION_IDLE_TIMEOUT_MINUTES must be > 0, "
            f"got {config.session.idle_timeout_minutes}"
        )
    if config.session.max_message_length < 1:
        raise ValueError(
            f"MAX_MESSAGE_LENGTH must be >= 1, got {config.session.max_message_length}"
        )
    if config.orders.max_id_attempts < 1:
        raise ValueError(
            f"ORDER_ID_MAX_ATTEMPTS must be >= 1, got {config.orders.max_id_attempts}"
        )
    if config.orders.inbox_limit < 1:
        raise ValueError(
            f"NOTIFICATION_INBOX_LIMIT must be >= 1, got {config.orders.inbox_limit}"
        )
    if not config.orders.id_prefix.strip():
        raise ValueError("ORDER_ID_PREFIX must not be empty")

    for var_name, phone in [
        ("WHOLESALER_COORDINATOR_PHONE", config.coordinators.wholesaler_phone),
        ("HORECA_EXECUTIVE_PHONE", config.coordinators.horeca_phone),
        ("MASS_MARKET_COORDINATOR_PHONE", config.coordinators.mass_market_phone),
        ("COMMERCIAL_DIRECTOR_PHONE", config.coordinators.commercial_director_phone),
    ]:
        if not phone.isdigit():
            raise ValueError(f"{var_name} must contain digits only, got {phone!r}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    handler = logging.StreamHandler()
    handler.addFilter(ConversationIdFilter())
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(conversation_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )
    logger.info("Configuration loaded for '%s' (%s)", config.business.name, config.bot_name)
    return config


# Singleton instance
settings = load_config()
