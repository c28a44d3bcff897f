from order_engine.orders.finalizer import OrderFinalizer, generate_order_id
from order_engine.orders.lifecycle import OrderLifecycleManager, can_operate, visible_to
from order_engine.orders.notifier import NotificationFanout
from order_engine.orders.state_machine import TRANSITIONS, allowed_targets, is_terminal, replay

__all__ = [
    "OrderFinalizer",
    "generate_order_id",
    "OrderLifecycleManager",
    "can_operate",
    "visible_to",
    "NotificationFanout",
    "TRANSITIONS",
    "allowed_targets",
    "is_terminal",
    "replay",
]
