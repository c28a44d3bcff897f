"""Back-office account and operator identity models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from order_engine.schemas.customer_schema import CoordinatorType


class Role(str, Enum):
    ADMINISTRATOR = "administrator"
    SUPPORT = "support"
    OPERATOR = "operator"
    HOME_DESK = "home_desk"


class Account(BaseModel):
    """A dashboard user that can receive notifications."""

    account_id: str
    email: str
    name: str = ""
    role: Role
    coordinator_type: Optional[CoordinatorType] = None
    active: bool = True


@dataclass(frozen=True)
class OperatorIdentity:
    """Identity attached to a back-office request by the auth layer."""

    account_id: str
    email: str
    role: Role
    coordinator_type: Optional[CoordinatorType] = None
