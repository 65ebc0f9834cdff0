"""
In-Process Broadcaster

Delivers order events straight to the staff connections held by this
process. Used in development mode (ENV_MODE=development) and whenever
the API runs as a single worker.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Any

from qrcafe.services.realtime.base import BaseBroadcaster, EventKind, build_event

logger = logging.getLogger(__name__)


class LocalBroadcaster(BaseBroadcaster):
    """Fan-out within one process."""

    def __init__(self):
        super().__init__()
        logger.info("LocalBroadcaster initialized")

    @property
    def provider_name(self) -> str:
        return "local"

    def publish(self, kind: EventKind, order: dict[str, Any]) -> None:
        delivered = self.deliver_local(build_event(kind, order))
        logger.debug(f"{kind.value} {order.get('order_id')} queued for {delivered} staff view(s)")
