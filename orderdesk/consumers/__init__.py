"""
Order status consumers.

Poller and realtime subscriber both feed one OrderStateReconciler.
"""

from orderdesk.consumers.polling import OrderStatusPoller
from orderdesk.consumers.reconciler import OrderStateReconciler
from orderdesk.consumers.subscription import OrderStatusSubscriber
from orderdesk.consumers.waiter import order_snapshot_fetcher, wait_for_order

__all__ = [
    "OrderStateReconciler",
    "OrderStatusPoller",
    "OrderStatusSubscriber",
    "order_snapshot_fetcher",
    "wait_for_order",
]
