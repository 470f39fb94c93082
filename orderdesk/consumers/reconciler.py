"""
Order State Reconciler

One local view of orders shared by the polling and the push consumers.
Every update, whatever its source, goes through apply(): the record with
the newer updatedAt (createdAt when absent) wins, and on a tie the record
already held is kept, so duplicated or replayed deliveries change nothing.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"PAYMENT_CONFIRMED", "IN_PREPARATION"})

Snapshot = dict[str, Any]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string or datetime -> aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def snapshot_time(snapshot: Mapping[str, Any]) -> Optional[datetime]:
    return parse_timestamp(snapshot.get("updatedAt") or snapshot.get("createdAt"))


class OrderStateReconciler:
    """
    Last-write-wins store of order snapshots keyed by order id.

    Snapshots use the API's camelCase shape ({"id", "status", "updatedAt", ...}).

    Args:
        on_change: Called with the new snapshot whenever one is accepted
    """

    def __init__(self, on_change: Optional[Callable[[Snapshot], None]] = None):
        self._orders: dict[int, Snapshot] = {}
        self._on_change = on_change

    def __len__(self) -> int:
        return len(self._orders)

    def __contains__(self, order_id: int) -> bool:
        return order_id in self._orders

    def get(self, order_id: int) -> Optional[Snapshot]:
        return self._orders.get(order_id)

    def orders(self) -> list[Snapshot]:
        """All held orders, newest first."""
        return sorted(
            self._orders.values(),
            key=lambda o: parse_timestamp(o.get("createdAt")) or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )

    def has_active_orders(self) -> bool:
        return any(o.get("status") in ACTIVE_STATUSES for o in self._orders.values())

    def _accept(self, order_id: int, snapshot: Snapshot) -> None:
        self._orders[order_id] = snapshot
        if self._on_change is not None:
            self._on_change(snapshot)

    def apply(self, update: Mapping[str, Any]) -> bool:
        """
        Apply a full order snapshot.

        Returns:
            True if the store changed
        """
        order_id = update.get("id")
        if order_id is None:
            logger.debug("Ignoring snapshot without id")
            return False
        order_id = int(order_id)

        current = self._orders.get(order_id)
        if current is not None:
            incoming_at = snapshot_time(update)
            current_at = snapshot_time(current)
            if incoming_at is None or (current_at is not None and incoming_at <= current_at):
                return False

        self._accept(order_id, dict(update))
        return True

    def apply_status(self, order_id: int, status: str, timestamp: Any) -> bool:
        """
        Apply a status-only event ({"orderId", "status", "timestamp"}).

        The event timestamp stands in for updatedAt. An unknown order is
        recorded with just its id and status until a full snapshot arrives.
        """
        order_id = int(order_id)
        at = parse_timestamp(timestamp)
        if at is None:
            return False

        current = self._orders.get(order_id)
        if current is None:
            self._accept(order_id, {"id": order_id, "status": status, "updatedAt": at.isoformat()})
            return True

        current_at = snapshot_time(current)
        if current_at is not None and at <= current_at:
            return False
        if current.get("status") == status:
            return False

        self._accept(order_id, {**current, "status": status, "updatedAt": at.isoformat()})
        return True

    def merge(self, snapshots: Iterable[Mapping[str, Any]]) -> list[int]:
        """Apply a batch; returns ids that changed."""
        return [int(s["id"]) for s in snapshots if self.apply(s)]

    def replace(self, snapshots: Iterable[Mapping[str, Any]]) -> None:
        """Forced refresh: the batch becomes the whole store."""
        self._orders = {int(s["id"]): dict(s) for s in snapshots if s.get("id") is not None}
        logger.debug(f"Reconciler replaced with {len(self._orders)} order(s)")
