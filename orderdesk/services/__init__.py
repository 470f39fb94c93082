"""
                        Services Module

Business logic behind the API routes. External collaborators follow the
hybrid pattern: an abstract base, an in-process implementation for
development and tests, and a real one for production.

Services:
    - payment: Stripe hosted checkout and webhook verification
    - realtime: Redis pub/sub fan-out
    - cache: Redis view cache for public reads
    - orders, checkout, webhooks: order lifecycle
    - menu, auth, reports: restaurant administration
    - excel_manager: sales workbook export
"""

from orderdesk.services.excel_manager import ExcelManager
from orderdesk.services.fanout import StatusFanout

__all__ = ["ExcelManager", "StatusFanout"]
