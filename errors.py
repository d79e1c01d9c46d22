# ============================================================
# errors.py — Domain error taxonomy
# ============================================================
# Every failure the core can report to a caller. main.py turns
# these into {"message": ..., "ok": False} with status_code.
# ============================================================


class MarketplaceError(Exception):
    """Base class; `message` is safe to show to the end user."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    status_code = 400


class NotFoundError(MarketplaceError):
    status_code = 404


class InvalidStateError(MarketplaceError):
    status_code = 400


class InsufficientStockError(MarketplaceError):
    status_code = 400


class ConflictError(MarketplaceError):
    status_code = 400


class InternalError(MarketplaceError):
    status_code = 500


class AuthError(MarketplaceError):
    """Missing or unverifiable token."""
    status_code = 401


class AccessDeniedError(MarketplaceError):
    """Valid token, wrong role or deactivated account."""
    status_code = 403
