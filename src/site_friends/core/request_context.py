"""Per-request context shared by the middleware stack.

Created when a request enters the application and filled in as it travels
inward: the friend-token authentication records who the caller is, the
access log reads everything back once the response is out.
"""

from dataclasses import dataclass


@dataclass
class RequestContext:
    request_id: str
    method: str = ""
    path: str = ""
    client_ip: str = "unknown"
    account_id: int | None = None
    feed_authenticated: bool = False
