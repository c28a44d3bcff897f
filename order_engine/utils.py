"""Shared utilities used across the order engine."""

import re
import unicodedata
from datetime import datetime, timezone


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("310 232 5151")
        '3102325151'
        >>> normalize_phone("+57 (310) 232-5151")
        '+573102325151'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def fold_text(value: str) -> str:
    """Lowercase and strip diacritics so 'Acacías' and 'acacias' compare equal.

    Examples:
        >>> fold_text("  San Martín ")
        'san martin'
    """
    decomposed = unicodedata.normalize("NFKD", value.strip().lower())
    return "".join(c for c in decomposed if unicodedata.category(c) != "Mn")


_EDGE_SYMBOLS = re.compile(r"^[\W_]+|[\W_]+$")


def keyword_key(value: str) -> str:
    """Fold a message and drop the emoji and punctuation around it.

    WhatsApp buttons arrive as labels like '🛒 Pedido', so menu keywords
    are compared on this key rather than on the raw text.

    Examples:
        >>> keyword_key("🏠 Hogar")
        'hogar'
        >>> keyword_key("¡Finalizar!")
        'finalizar'
    """
    return _EDGE_SYMBOLS.sub("", fold_text(value))


def format_cop(amount: int) -> str:
    """Format a peso amount the way es-CO prints it.

    Examples:
        >>> format_cop(80000)
        '$80.000'
    """
    return "$" + f"{amount:,}".replace(",", ".")


def utc_now() -> datetime:
    """Default clock for every component that stamps times."""
    return datetime.now(timezone.utc)
