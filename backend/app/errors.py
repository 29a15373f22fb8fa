from typing import Optional

from fastapi import HTTPException


class AppError(HTTPException):
    """
    Base for every user-facing failure.

    Subclasses pin the HTTP status; `detail` carries the human-readable message
    that ends up in the `{success: false, message}` envelope.
    """

    status_code_default = 500

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code_default, detail=message)

    @property
    def message(self) -> str:
        return str(self.detail)


class InvalidArgument(AppError):
    status_code_default = 400


class Unauthenticated(AppError):
    status_code_default = 401

    def __init__(self, message: str = "Not authenticated. Please login."):
        super().__init__(message)


class Forbidden(AppError):
    status_code_default = 403


class NotFound(AppError):
    status_code_default = 404


class AlreadyVoided(AppError):
    status_code_default = 400

    def __init__(self, message: str = "Invoice is already voided"):
        super().__init__(message)


class HasRefunds(AppError):
    status_code_default = 400

    def __init__(self, message: str = "Cannot void invoice with existing refunds"):
        super().__init__(message)


class InvoiceVoided(AppError):
    status_code_default = 400

    def __init__(self, message: str = "Cannot refund a voided invoice"):
        super().__init__(message)


class InternalFailure(AppError):
    status_code_default = 500


class ProcedureError(Exception):
    """Raised by the procedure gateway for any failure of the external store."""

    def __init__(self, procedure: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{procedure}: {message}")
        self.procedure = procedure
        self.message = message
        self.cause = cause

    def mentions(self, needle: str) -> bool:
        return needle.lower() in (self.message or "").lower()
