"""
Error taxonomy for the store.

Every failure a shop operation can produce derives from ShopError and carries
the HTTP status the API layer answers with. StorageFailure keeps its cause out
of the response body; the cause is logged where it happens.
"""
from typing import Optional


class ShopError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def public_detail(self) -> str:
        return self.detail


class ValidationError(ShopError):
    status_code = 400
    default_detail = "Invalid request"


class InvalidCredentials(ShopError):
    status_code = 401
    default_detail = "Invalid credentials"


class Unauthenticated(ShopError):
    status_code = 401
    default_detail = "Could not validate credentials"


class Forbidden(ShopError):
    status_code = 403
    default_detail = "Insufficient permissions"


class NotFound(ShopError):
    status_code = 404
    default_detail = "Not found"


class Conflict(ShopError):
    status_code = 409
    default_detail = "Already exists"


class StorageFailure(ShopError):
    status_code = 500

    @property
    def public_detail(self) -> str:
        return self.default_detail
