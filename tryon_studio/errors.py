"""Error taxonomy for the try-on studio."""


class StudioError(Exception):
    """Base class for every error the studio raises on purpose."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(StudioError):
    """Malformed user input (height, blank prompt, undecodable upload)."""


class TransitionNotAllowed(StudioError):
    """The action is not valid in the current step, or its guard failed."""


class OperationInProgress(StudioError):
    """A call for the same operation slot is already outstanding."""

    def __init__(self, message: str = "Another operation is in progress."):
        super().__init__(message)


class GatewayError(StudioError):
    """The generation service failed. Carries a human-readable message only."""
