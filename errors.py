"""
Error taxonomy for rejected requests

Every rejection carries an explicit ErrorKind so callers dispatch on the
kind, not on message text. Bodies are rendered as {"msg": ...}.
"""

from enum import Enum
from typing import List, Union

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse


class ErrorKind(str, Enum):
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"


STATUS_CODES = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
}

Message = Union[str, List[str]]


class RequestError(HTTPException):
    kind = ErrorKind.BAD_REQUEST

    def __init__(self, msg: Message):
        super().__init__(status_code=STATUS_CODES[self.kind], detail=msg)
        self.msg = msg


class BadRequestError(RequestError):
    kind = ErrorKind.BAD_REQUEST


class NotFoundError(RequestError):
    kind = ErrorKind.NOT_FOUND


class UnauthorizedError(RequestError):
    kind = ErrorKind.UNAUTHORIZED


_BY_KIND = {cls.kind: cls for cls in (BadRequestError, NotFoundError, UnauthorizedError)}


def error_for(kind: ErrorKind, msg: Message) -> RequestError:
    return _BY_KIND[kind](msg)


async def http_error_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"msg": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc) -> JSONResponse:
    # only reached for bodies FastAPI itself cannot parse (e.g. malformed JSON)
    messages = [e.get("msg", "Invalid request") for e in exc.errors()]
    return JSONResponse(status_code=400, content={"msg": messages})
