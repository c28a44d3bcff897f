"""
Registration slot filling for home and business customers.

Customers send their details in one message, either labelled
("Ciudad: Villavicencio") or one value per line in the order asked.
Each slot has a validator; values that fail stay empty and the
customer is asked again for whatever is still missing.

Usage:
    slots = ProfileSlots(ProfileKind.HOME)
    slots.fill_from_message("Nombre: María García\\nCiudad: Villavicencio\\nDirección: Cra 30 #25-40")
    if slots.is_complete():
        update = slots.to_update(Segment.HOME)
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from order_engine.conversation.session_store import ProfileKind
from order_engine.logging_context import get_conversation_logger
from order_engine.schemas.customer_schema import ProfileUpdate, Segment
from order_engine.utils import keyword_key

logger = get_conversation_logger(__name__)

# Validation thresholds
MIN_NAME_LENGTH = 2
MIN_CITY_LENGTH = 3
MIN_ADDRESS_LENGTH = 5


def _validate_name(value: str) -> bool:
    return len(value.strip()) >= MIN_NAME_LENGTH


def _validate_city(value: str) -> bool:
    return len(value.strip()) >= MIN_CITY_LENGTH and not value.strip().isdigit()


def _validate_address(value: str) -> bool:
    return len(value.strip()) >= MIN_ADDRESS_LENGTH


@dataclass(frozen=True)
class SlotDefinition:
    """Schema for a single registration field."""

    name: str
    display_name: str
    aliases: tuple[str, ...]
    required: bool = True
    validator: Optional[Callable[[str], bool]] = None


HOME_SLOTS: list[SlotDefinition] = [
    SlotDefinition("name", "Nombre", ("nombre",), validator=_validate_name),
    SlotDefinition("city", "Ciudad", ("ciudad",), validator=_validate_city),
    SlotDefinition("address", "Dirección", ("direccion",), validator=_validate_address),
]

BUSINESS_SLOTS: list[SlotDefinition] = [
    SlotDefinition("business_name", "Nombre del negocio", ("nombre del negocio", "negocio", "nombre"),
                   validator=_validate_name),
    SlotDefinition("city", "Ciudad o zona", ("ciudad", "zona"), validator=_validate_city),
    SlotDefinition("address", "Dirección", ("direccion",), validator=_validate_address),
    SlotDefinition("contact_person", "Persona de contacto", ("persona de contacto", "contacto"),
                   validator=_validate_name),
    SlotDefinition("products_of_interest", "Productos de interés", ("productos",), required=False),
]


def definitions_for(kind: ProfileKind) -> list[SlotDefinition]:
    return HOME_SLOTS if kind == ProfileKind.HOME else BUSINESS_SLOTS


def _clean(value: str) -> str:
    return value.replace("*", "").strip()


class ProfileSlots:
    """Collects registration fields across one or more messages."""

    def __init__(self, kind: ProfileKind, values: Optional[dict[str, str]] = None) -> None:
        self.kind = kind
        self.definitions = definitions_for(kind)
        self.values: dict[str, str] = dict(values or {})

    def _match_label(self, label: str) -> Optional[SlotDefinition]:
        folded = keyword_key(label)
        for defn in self.definitions:
            if any(folded == alias or folded.startswith(alias) for alias in defn.aliases):
                return defn
        return None

    def _set(self, defn: SlotDefinition, raw_value: str, rejected: list[str]) -> None:
        value = _clean(raw_value)
        if not value:
            return
        if defn.validator and not defn.validator(value):
            logger.debug("Slot '%s' validation failed: '%s'", defn.name, value)
            rejected.append(defn.display_name)
            return
        self.values[defn.name] = value

    def fill_from_message(self, text: str) -> list[str]:
        """Parse a registration message into slots.

        Returns:
            Display names of fields whose values were rejected.
        """
        rejected: list[str] = []
        positional: list[str] = []

        for raw_line in text.splitlines():
            line = re.sub(r"^[\W_]+", "", raw_line.strip())
            if not line:
                continue
            label, sep, value = line.partition(":")
            defn = self._match_label(label) if sep else None
            if defn is not None:
                self._set(defn, value, rejected)
            else:
                positional.append(line)

        # Unlabelled lines fill the remaining slots in the order they were asked for.
        empty = [d for d in self.definitions if d.name not in self.values]
        for defn, value in zip(empty, positional):
            self._set(defn, value, rejected)

        logger.debug("Registration slots now: %s", sorted(self.values))
        return rejected

    def missing(self) -> list[SlotDefinition]:
        """Required slots still unfilled."""
        return [d for d in self.definitions if d.required and d.name not in self.values]

    def is_complete(self) -> bool:
        return not self.missing()

    def to_update(self, segment: Segment) -> ProfileUpdate:
        return ProfileUpdate(segment=segment, **self.values)
