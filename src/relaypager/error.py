"""Pagination error module."""

import http


class Error(Exception):
    """
    Base class for pagination errors.

    All error classes include the following attributes:
    • status: HTTP status code (int)
    • phrase: HTTP reason phrase
    """

    status = http.HTTPStatus.INTERNAL_SERVER_ERROR.value
    phrase = http.HTTPStatus.INTERNAL_SERVER_ERROR.phrase


class ClientError(Error):
    """
    Base class for errors caused by the pagination request.
    """

    status = http.HTTPStatus.BAD_REQUEST.value
    phrase = http.HTTPStatus.BAD_REQUEST.phrase


class ConnectionArgsError(ClientError, ValueError):
    """
    Error raised if connection arguments cannot be satisfied; for example, if both "first"
    and "last" are requested at the same time. Raised before any adapter call is made.
    """

    def __init__(self, message: str):
        super().__init__(f"Invalid connection arguments: {message}")


class CursorError(ClientError, ValueError):
    """
    Error raised if an adapter cannot decode a cursor into a value of the primary field.
    """


class FieldError(ClientError, ValueError):
    """
    Error raised if an adapter is asked to order by, or fetch, a field that its records do
    not have.
    """
