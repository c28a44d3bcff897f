"""
Error taxonomy for the order engine.

Three families, each handled at a different seam:
- UserRecoverableError: the dialogue layer turns these into a chat reply
  and leaves the session intact.
- BusinessRuleError: rejected before any mutation and surfaced to the
  back-office caller as a structured error.
- InfrastructureError: store or channel faults, propagated as retryable.
"""

from typing import Optional


class OrderEngineError(Exception):
    """Base class for every error raised by the engine."""

    retryable: bool = False


# --------------------------------------------------------------------- #
# User-recoverable
# --------------------------------------------------------------------- #


class UserRecoverableError(OrderEngineError):
    """A condition the customer can fix by sending another message."""


class NoProductsRecognized(UserRecoverableError):
    """No fragment of the message resolved to a catalog product."""

    def __init__(self, text: str) -> None:
        super().__init__(f"No catalog products recognized in {text!r}")
        self.text = text


class EmptyCartError(UserRecoverableError):
    """Finalize was requested with nothing in the cart."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Cart is empty for {user_id}")
        self.user_id = user_id


class UnknownCustomerError(UserRecoverableError):
    """The phone number has no registered customer profile."""

    def __init__(self, phone: str) -> None:
        super().__init__(f"No customer profile for {phone}")
        self.phone = phone


# --------------------------------------------------------------------- #
# Business-rule violations
# --------------------------------------------------------------------- #


class BusinessRuleError(OrderEngineError):
    """A back-office request that breaks an order or account rule."""


class InvalidTransitionError(BusinessRuleError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, order_id: str, current: str, target: str, allowed: list[str]) -> None:
        super().__init__(
            f"Order {order_id}: no valid transition from '{current}' to '{target}'. "
            f"Allowed targets: {allowed}"
        )
        self.order_id = order_id
        self.current = current
        self.target = target
        self.allowed = allowed


class MissingCancellationReasonError(BusinessRuleError):
    """Cancelling an order requires a note."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id}: a cancellation reason is required")
        self.order_id = order_id


class UnauthorizedTransitionError(BusinessRuleError):
    """The operator may not act on this order."""

    def __init__(self, order_id: str, role: str, coordinator_type: Optional[str]) -> None:
        super().__init__(
            f"Order {order_id}: role '{role}' (type {coordinator_type!r}) "
            "may not modify this order"
        )
        self.order_id = order_id
        self.role = role
        self.coordinator_type = coordinator_type


class OrderNotFoundError(BusinessRuleError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class AccountNotFoundError(BusinessRuleError):
    def __init__(self, account_id: str) -> None:
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


# --------------------------------------------------------------------- #
# Infrastructure faults
# --------------------------------------------------------------------- #


class InfrastructureError(OrderEngineError):
    """A store or channel failure. Callers may retry."""

    retryable = True


class StoreUnavailableError(InfrastructureError):
    """The document store could not complete a read or write."""


class DuplicateOrderIdError(InfrastructureError):
    """The order id violates the store's uniqueness constraint."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order id {order_id} already exists")
        self.order_id = order_id


class ConcurrentModificationError(InfrastructureError):
    """The stored document changed between load and write."""

    def __init__(self, order_id: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"Order {order_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.order_id = order_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class MessageChannelError(InfrastructureError):
    """The outbound message could not be delivered."""

    def __init__(self, phone: str, reason: str = "") -> None:
        super().__init__(f"Could not deliver message to {phone}: {reason}".rstrip(": "))
        self.phone = phone
        self.reason = reason
