"""In-memory back-office account store."""

import logging
import threading
from typing import Optional

from order_engine.schemas.account_schema import Account, Role
from order_engine.schemas.customer_schema import CoordinatorType

logger = logging.getLogger(__name__)


class AccountStore:
    """Dashboard accounts keyed by account_id."""

    def __init__(self, accounts: Optional[list[Account]] = None) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = threading.Lock()
        for account in accounts or []:
            self.add(account)

    def add(self, account: Account) -> Account:
        with self._lock:
            self._accounts[account.account_id] = account.model_copy()
            return account.model_copy()

    def get(self, account_id: str) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(account_id)
            return account.model_copy() if account else None

    def list_active(
        self, role: Role, coordinator_type: Optional[CoordinatorType] = None
    ) -> list[Account]:
        """Active accounts with a role, optionally narrowed to a coordinator type."""
        with self._lock:
            return [
                a.model_copy()
                for a in self._accounts.values()
                if a.active
                and a.role == role
                and (coordinator_type is None or a.coordinator_type == coordinator_type)
            ]

    def set_active(self, account_id: str, active: bool) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return None
            account.active = active
            return account.model_copy()

    def delete(self, account_id: str) -> Optional[Account]:
        with self._lock:
            account = self._accounts.pop(account_id, None)
            return account.model_copy() if account else None
