# flowguard/errors.py
from typing import List, Optional


class FlowguardError(Exception):
    """Base class for errors raised by flowguard."""


class InputValidationError(FlowguardError, ValueError):
    """
    A top-level request is malformed (not a mapping, wrong operations shape,
    unknown profile). Domain problems inside a workflow are never raised.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [message])
