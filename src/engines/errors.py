"""
Validation errors raised by the computation engines.
"""

from typing import Optional


class ValidationError(ValueError):
    """
    Raised when an input is outside its allowed numeric range or a
    persistence-boundary invariant (such as shares summing to 100%) fails.

    The offending member or field, when known, is kept on the exception so
    callers can point the user at it.
    """

    def __init__(
        self,
        message: str,
        member_id: Optional[str] = None,
        member_name: Optional[str] = None,
        field: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.member_id = member_id
        self.member_name = member_name
        self.field = field
