"""
Order engine entry point.

Runs the console demo, or a single idle-session sweep the way the
production timer would.

Usage:
    Console mode:  python main.py console
    Scenario:      python main.py scenario home
    Idle sweep:    python main.py sweep
"""

import logging
import sys

from order_engine.config import settings

logger = logging.getLogger(__name__)


def _run_console_mode() -> None:
    """Start the interactive console demo."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    session.run()


def _run_scenario(name: str) -> None:
    from console_demo import ConsoleSession

    ConsoleSession().run_scenario(name)


def _run_sweep() -> None:
    """Play a short chat, then sweep as if the idle timeout had passed."""
    from datetime import timedelta

    from console_demo import ConsoleSession

    session = ConsoleSession()
    session.engine.handle_inbound_message(session.phone, "hola")
    later = session.engine.clock() + timedelta(minutes=settings.session.idle_timeout_minutes + 1)
    swept = session.engine.sweep_idle_sessions(now=later)
    logger.info("Swept sessions: %s", swept)
    for phone, text in session.channel.outbox:
        print(f"{phone}: {text}")


if __name__ == "__main__":
    mode = sys.argv[1] if len(sys.argv) > 1 else "console"
    if mode == "scenario" and len(sys.argv) > 2:
        _run_scenario(sys.argv[2])
    elif mode == "sweep":
        _run_sweep()
    else:
        _run_console_mode()
