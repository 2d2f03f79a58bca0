from __future__ import annotations


class TutorError(Exception):
    """Failure surfaced to the caller as ``{error, message}``."""

    status_code = 500
    error = "Tutor error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}


class InvalidMessageError(TutorError):
    status_code = 400
    error = "Bad request"

    def __init__(
        self,
        message: str = "Expected JSON body: { message: string, sessionId?: string }",
    ) -> None:
        super().__init__(message)


class ConfigurationError(TutorError):
    error = "Configuration error"


class ModelCallError(TutorError):
    error = "Model call failed"
