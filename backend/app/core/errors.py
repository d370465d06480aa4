from __future__ import annotations

from fastapi import HTTPException


class QuizError(Exception):
    status_code = 400
    error_code = "quiz_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(QuizError):
    status_code = 404
    error_code = "not_found"


class InvalidStateError(QuizError):
    status_code = 409
    error_code = "invalid_state"


def to_http_exception(exc: QuizError) -> HTTPException:
    # The app-level HTTPException handler unpacks dict details into the error envelope.
    return HTTPException(
        status_code=int(exc.status_code),
        detail={"error_code": exc.error_code, "error_message": exc.message},
    )
