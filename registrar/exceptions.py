"""
Exception hierarchy for the registrar.

Business-rule rejections (credit limit, clashes, full sections) are never
raised to callers; they come back as decisions. The exceptions here cover
infrastructure failures, bad input and authorization.
"""
from typing import Optional


class RegistrarError(Exception):
    """Base class for all registrar errors."""


class InfrastructureError(RegistrarError):
    """The persistent store could not complete an operation."""


class StoreError(InfrastructureError):
    """A backend error raised while talking to the database."""


class MalformedInputError(RegistrarError):
    """Input could not be interpreted (e.g. an unparseable time slot)."""


class NotFoundError(RegistrarError):
    """A referenced course, offering or enrollment does not exist."""


class PermissionDeniedError(RegistrarError):
    """The request context is not allowed to perform the operation."""


class SeatUnavailableError(RegistrarError):
    """Raised by a store when the conditional seat update affects no row."""

    def __init__(self, offering_id: str, message: Optional[str] = None):
        self.offering_id = offering_id
        super().__init__(message or f"No seats available in offering {offering_id}")


class DuplicateEnrollmentError(RegistrarError):
    """Raised by a store when the student already holds the offering."""

    def __init__(self, student_id: str, offering_id: str):
        self.student_id = student_id
        self.offering_id = offering_id
        super().__init__(f"Student {student_id} is already enrolled in offering {offering_id}")
