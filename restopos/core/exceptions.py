"""
Domain Error Taxonomy

Every failure the order/table core can report to a client. Errors are raised
by the services and converted to a structured JSON response at the request
boundary (see ``restopos.main``), so none of them can crash the process.

Author: Khalil Bannouri
Version: 4.0.0
"""

from typing import Optional


class POSError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class TokenInvalid(POSError):
    """
    Malformed, expired, forged or superseded table token.

    The public message is identical for every sub-case so a customer
    cannot probe which tables or versions exist.
    """

    status_code = 400
    default_message = (
        "This QR code is invalid, expired or has been invalidated. "
        "Please scan the new QR code on your table."
    )

    def __init__(self, reason: Optional[str] = None):
        # reason is for logs only, never sent to the client
        self.reason = reason
        super().__init__()


class InvalidTransition(POSError):
    """Requested order status change is not a legal lifecycle step."""

    status_code = 400

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change order status from '{current}' to '{requested}'",
            detail=f"current={current} requested={requested}",
        )


class InvalidRequest(POSError):
    status_code = 400
    default_message = "Invalid request"


class InvalidOrder(InvalidRequest):
    """Order draft rejected before anything was written."""

    default_message = "Invalid order"


class NotFound(POSError):
    status_code = 404
    default_message = "Not found"


class PersistenceFailure(POSError):
    """Database write failed; nothing was committed or broadcast."""

    status_code = 500
    default_message = "A server error occurred, please try again"
