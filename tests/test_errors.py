"""Unit tests for core/errors.py -- status codes and machine codes."""

import pytest

from core.errors import (
    BadRequestError,
    ForbiddenError,
    InternalServerError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
)


@pytest.mark.parametrize(
    "cls,status,code",
    [
        (BadRequestError, 400, "bad_request"),
        (UnauthorizedError, 401, "unauthorized"),
        (ForbiddenError, 403, "forbidden"),
        (NotFoundError, 404, "not_found"),
        (InternalServerError, 500, "internal_error"),
    ],
)
def test_defaults(cls, status, code):
    err = cls("boom")
    assert isinstance(err, ServiceError)
    assert err.status_code == status
    assert err.code == code
    assert err.message == "boom"
    assert str(err) == "boom"


def test_explicit_code_overrides_default():
    assert BadRequestError("Invalid username or password", code="bad_credentials").code == "bad_credentials"
