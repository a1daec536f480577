from typing import Any

from pydantic import BaseModel


class ErrorBody(BaseModel):
    kind: str
    code: str
    message: str
    details: dict[str, Any]


class ErrorResponse(BaseModel):
    error: ErrorBody
