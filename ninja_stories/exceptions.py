"""
Errors raised by the progression layer.
"""


class ConfigurationError(ValueError):
    """A tier table is empty or malformed. Raised at construction, never at runtime."""


class ProgressionStoreError(RuntimeError):
    """
    The progression store could not be read or written.
    Retryable: the next poll evaluates again from the persisted state.
    """

    def __init__(self, message: str, user_id=None):
        super().__init__(message)
        self.user_id = user_id
