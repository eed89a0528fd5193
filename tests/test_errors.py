"""Tests for wren.errors — exception hierarchy and coercion."""

import copy
import pickle

import pytest

from wren.errors import (
    ConfigurationError,
    HandlerError,
    HTTPError,
    NotFound,
    WrenError,
    coerce_error,
)


class TestHierarchy:
    def test_http_error_is_wren_error(self) -> None:
        assert issubclass(HTTPError, WrenError)

    def test_not_found_is_http_error(self) -> None:
        assert issubclass(NotFound, HTTPError)

    def test_configuration_error_is_wren_error(self) -> None:
        assert issubclass(ConfigurationError, WrenError)

    def test_handler_error_is_wren_error(self) -> None:
        assert issubclass(HandlerError, WrenError)


class TestHTTPError:
    def test_defaults(self) -> None:
        err = HTTPError()
        assert err.status == 500
        assert err.code == "HTTP_ERROR"
        assert err.expose is False

    def test_client_errors_exposed_by_default(self) -> None:
        assert HTTPError(status=400, message="Bad body").expose is True

    def test_explicit_expose_wins(self) -> None:
        assert HTTPError(status=503, message="Down", expose=True).expose is True
        assert HTTPError(status=418, expose=False).expose is False

    def test_str_with_message(self) -> None:
        assert str(HTTPError(status=400, message="Bad request body")) == "400: Bad request body"

    def test_str_without_message(self) -> None:
        assert str(HTTPError(status=502)) == "502"

    @pytest.mark.parametrize("status", [0, 99, 600, 1000])
    def test_invalid_status_rejected(self, status: int) -> None:
        with pytest.raises(ConfigurationError, match="Invalid HTTP status"):
            HTTPError(status=status)

    def test_immutable(self) -> None:
        err = HTTPError(status=400)
        with pytest.raises(AttributeError):
            err.status = 500  # type: ignore[misc]

    def test_can_be_raised(self) -> None:
        with pytest.raises(HTTPError) as exc_info:
            raise HTTPError(status=409, message="Conflict")
        assert exc_info.value.status == 409


class TestNotFound:
    def test_fields(self) -> None:
        err = NotFound("Route not found for GET /missing")
        assert err.status == 404
        assert err.code == "NOT_FOUND"
        assert err.expose is True
        assert err.message == "Route not found for GET /missing"

    def test_default_message(self) -> None:
        assert NotFound().message == "Not Found"


class TestCoerceError:
    def test_exception_returned_as_is(self) -> None:
        err = ValueError("boom")
        assert coerce_error(err) is err

    def test_string_wrapped(self) -> None:
        err = coerce_error("boom")
        assert isinstance(err, HandlerError)
        assert err.value == "boom"
        assert str(err) == "non-error thrown: 'boom'"

    def test_arbitrary_value_wrapped(self) -> None:
        payload = {"code": 7}
        err = coerce_error(payload)
        assert isinstance(err, HandlerError)
        assert err.value is payload


class TestErrorArgs:
    def test_message_in_args(self) -> None:
        assert NotFound("Route not found for GET /x").args == ("Route not found for GET /x",)

    def test_status_in_args_without_message(self) -> None:
        assert HTTPError(status=502).args == (502,)

    def test_not_found_pickles(self) -> None:
        err = pickle.loads(pickle.dumps(NotFound("Route not found for GET /x")))
        assert type(err) is NotFound
        assert err.status == 404
        assert err.code == "NOT_FOUND"
        assert err.message == "Route not found for GET /x"
        assert err.expose is True

    def test_http_error_copies(self) -> None:
        original = HTTPError(status=429, message="Slow down", headers=(("Retry-After", "5"),))
        err = copy.copy(original)
        assert err == original
        assert err.headers == (("Retry-After", "5"),)
        assert str(err) == "429: Slow down"

    def test_handler_error_pickles(self) -> None:
        err = pickle.loads(pickle.dumps(HandlerError({"code": 7})))
        assert err.value == {"code": 7}
        assert str(err) == "non-error thrown: {'code': 7}"
