import pytest

from delivro_logistic.core.exceptions import (
    AnnotatedCarrierError,
    AuthenticationFailedError,
    CarrierError,
    CarrierNotFoundError,
    InvalidAddressError,
    RateLimitExceededError,
    ServiceUnavailableError,
    INVALID_ADDRESS,
    RATE_LIMIT_EXCEEDED,
    SERVICE_UNAVAILABLE,
    error_from_status,
    is_retryable,
)


def test_errors_compare_by_code_only():
    a = InvalidAddressError("freightcom", message="bad postal code")
    b = InvalidAddressError("purolator", message="street missing")
    c = CarrierError("freightcom", code=INVALID_ADDRESS)

    assert a == b
    assert a == c
    assert a != ServiceUnavailableError("freightcom")
    assert len({a, b, c}) == 1


def test_matches_accepts_error_class_and_code():
    error = RateLimitExceededError("canadapost")

    assert error.matches(RateLimitExceededError)
    assert error.matches(RATE_LIMIT_EXCEEDED)
    assert error.matches(RateLimitExceededError("purolator"))
    assert not error.matches(InvalidAddressError)


def test_str_includes_carrier_code_message_and_cause():
    cause = ValueError("boom")
    error = CarrierError("freightcom", code="TIMEOUT", message="Request timed out", cause=cause)

    assert str(error) == "freightcom error (TIMEOUT): Request timed out: boom"
    assert error.__cause__ is cause


def test_builders_return_same_error():
    error = CarrierError("purolator", code="X")

    assert error.with_status_code(502) is error
    assert error.with_retryable(True) is error
    assert error.status_code == 502
    assert error.retryable is True


@pytest.mark.parametrize(
    "error,expected",
    [
        (ServiceUnavailableError("freightcom"), True),
        (RateLimitExceededError("freightcom"), True),
        (CarrierError("freightcom", code=SERVICE_UNAVAILABLE), True),
        (InvalidAddressError("freightcom"), False),
        (CarrierError("freightcom", code="TIMEOUT", retryable=True), True),
        (ServiceUnavailableError("freightcom", retryable=False), False),
        (ValueError("not a carrier error"), False),
    ],
)
def test_is_retryable(error, expected):
    assert is_retryable(error) is expected


def test_annotated_error_keeps_code_and_retryability():
    inner = ServiceUnavailableError("canadapost", message="down for maintenance", status_code=503)
    annotated = AnnotatedCarrierError("canadapost", inner)

    assert str(annotated) == f"canadapost: {inner}"
    assert annotated.code == SERVICE_UNAVAILABLE
    assert annotated.status_code == 503
    assert is_retryable(annotated)
    assert annotated == inner
    assert annotated.error is inner


def test_annotated_error_wraps_plain_exception():
    annotated = AnnotatedCarrierError("mock", RuntimeError("kaboom"))

    assert str(annotated) == "mock: kaboom"
    assert annotated.code == "CARRIER_ERROR"
    assert not is_retryable(annotated)


@pytest.mark.parametrize(
    "status,error_cls",
    [
        (401, AuthenticationFailedError),
        (403, AuthenticationFailedError),
        (429, RateLimitExceededError),
        (500, ServiceUnavailableError),
        (503, ServiceUnavailableError),
    ],
)
def test_error_from_status_maps_shared_conditions(status, error_cls):
    error = error_from_status("freightcom", status, "nope", code="E123")

    assert isinstance(error, error_cls)
    assert error.status_code == status
    assert error.details["carrier_code"] == "E123"


def test_error_from_status_keeps_carrier_code_for_client_errors():
    assert error_from_status("freightcom", 400, "bad", code="INVALID_POSTAL").code == "INVALID_POSTAL"
    assert error_from_status("freightcom", 404, "missing").code == "HTTP_404"


def test_to_dict_reports_retryability():
    data = CarrierNotFoundError("dhl").to_dict()

    assert data["error_type"] == "CarrierNotFoundError"
    assert data["code"] == "CARRIER_NOT_FOUND"
    assert data["carrier"] == "dhl"
    assert data["retryable"] is False
