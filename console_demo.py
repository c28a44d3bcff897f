"""
Offline console demo: plays WhatsApp conversations against in-memory stores.

Uses the real dialogue, cart resolver, finalizer, lifecycle manager and
notification fan-out. No WhatsApp API, no database, no network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario business
    python console_demo.py --scenario backoffice
"""

import argparse

from order_engine.config import settings
from order_engine.engine import OrderEngine
from order_engine.errors import BusinessRuleError, InfrastructureError
from order_engine.messages.templates import SERVICE_ERROR_MESSAGE
from order_engine.schemas.account_schema import Account, OperatorIdentity, Role
from order_engine.schemas.customer_schema import CoordinatorType
from order_engine.schemas.order_schema import OrderStatus
from order_engine.tools.accounts import AccountStore
from order_engine.tools.channel import RecordingChannel

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_PHONE = "573001112233"

DEMO_ACCOUNTS = [
    Account(account_id="admin-1", email="admin@avellano.com", name="Admin", role=Role.ADMINISTRATOR),
    Account(account_id="home-1", email="hogares@avellano.com", name="Hogares", role=Role.HOME_DESK),
    Account(account_id="op-director", email="director@avellano.com", name="Dirección",
            role=Role.OPERATOR, coordinator_type=CoordinatorType.COMMERCIAL_DIRECTOR),
    Account(account_id="op-mayorista", email="mayoristas@avellano.com", name="Mayoristas",
            role=Role.OPERATOR, coordinator_type=CoordinatorType.WHOLESALER),
]


class ConsoleSession:
    """Drives an OrderEngine from the terminal."""

    def __init__(self, phone: str = DEMO_PHONE) -> None:
        self.phone = phone
        self.channel = RecordingChannel()
        self.engine = OrderEngine(channel=self.channel, accounts=AccountStore(DEMO_ACCOUNTS))

    def bot_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[{settings.business.name}]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "home": [
            "hola",
            "pedido",
            "hogar",
            "Nombre: María García\nCiudad: Villavicencio\nDirección: Cra 30 #25-40",
            "2 pollo entero, 3 alitas",
            "1 pechuga",
            "finalizar",
        ],
        "business": [
            "hola",
            "negocios",
            "asadero",
            "Nombre del negocio: Asadero El Sabor\nCiudad o zona: Villavicencio",
            "Dirección: Calle 38 #30-12\nPersona de contacto: Juan Pérez",
            "4 pollo entero y 2 menudencias",
            "finalizar",
            "hogar",
        ],
        "cancel": [
            "pedido",
            "hogar",
            "Carlos Ruiz\nAcacías\nCalle 10 #5-20",
            "5 muslos",
            "cancelar",
        ],
        "backoffice": [
            "pedido",
            "negocios",
            "tienda",
            "Nombre del negocio: Tienda La 14\nCiudad: Villavicencio\n"
            "Dirección: Cra 40 #12-30\nPersona de contacto: Ana Torres",
            "10 pollo entero",
            "finalizar",
        ],
    }

    def _process_input(self, text: str) -> None:
        try:
            replies = self.engine.handle_inbound_message(self.phone, text)
        except InfrastructureError as exc:
            self.system_log(f"{RED}{exc}{RESET}")
            replies = [SERVICE_ERROR_MESSAGE]
        for reply in replies:
            self.bot_say(reply)
        session = self.engine.sessions.load(self.phone)
        self.system_log(f"Mode: {type(session.mode).__name__} | cart lines: {len(session.cart)}")

    def _show_back_office(self) -> None:
        print(f"\n{BOLD}  Back office{RESET}")
        for account in DEMO_ACCOUNTS:
            for record in self.engine.inbox(account.account_id):
                self.system_log(f"{account.email}: {record.message}")

    def _work_orders(self) -> None:
        """Operator takes and completes every order it can see."""
        operator = OperatorIdentity("op-director", "director@avellano.com", Role.OPERATOR,
                                    CoordinatorType.COMMERCIAL_DIRECTOR)
        for order in self.engine.visible_orders(operator):
            for target in (OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED):
                try:
                    updated = self.engine.transition_order(order.order_id, target, operator)
                except BusinessRuleError as exc:
                    print(f"{RED}  {exc}{RESET}")
                    break
                self.system_log(f"{updated.order_id}: {updated.status.value}")

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  WHATSAPP ORDER ENGINE - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        for step in steps:
            print(f"\n{BLUE}[Cliente] {RESET}{step}")
            self._process_input(step)

        if scenario == "backoffice":
            self._work_orders()
        self._show_back_office()

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Orders: {[o.order_id for o in self.engine.orders.find()]}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  WHATSAPP ORDER ENGINE - Console Demo{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}  Type 'quit' to exit, 'inbox' for back-office notifications{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        while True:
            user_input = input(f"\n{BLUE}[Cliente] {RESET}").strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if user_input.lower() == "inbox":
                self._show_back_office()
                continue
            self._process_input(user_input)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
