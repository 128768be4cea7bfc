"""Source API clients.

- ``ToastClient``: point-of-sale orders, labor and configuration
- ``MarginEdgeClient``: invoices, categories and vendors

Both share ``BaseClient`` (error mapping, pagination) and throttle every call
through their own ``RequestQueue``.
"""

from pos_metrics.clients.http import BaseClient, Page, RequestQueue, make_session
from pos_metrics.clients.marginedge import MarginEdgeClient
from pos_metrics.clients.toast import ToastClient

__all__ = [
    "BaseClient",
    "MarginEdgeClient",
    "Page",
    "RequestQueue",
    "ToastClient",
    "make_session",
]
