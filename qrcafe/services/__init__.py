"""
                        Services Module

Business logic behind the API:
    - lifecycle: order creation and status transitions
    - store: order persistence
    - realtime: order event fan-out to staff views
    - auth: staff credential checks
"""

from qrcafe.services.lifecycle import OrderLifecycleEngine
from qrcafe.services.store import OrderStore

__all__ = ["OrderLifecycleEngine", "OrderStore"]
