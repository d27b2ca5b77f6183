"""Tests for lumenhub exception hierarchy."""

import pytest

from lumenhub.exceptions import (
    LumenError,
    ConfigurationError,
    CommandError,
    ErrorKind,
    UnsupportedError,
    UnknownEntityError,
    TransportUnavailableError,
    PoolTimeoutError,
    DialError,
    PoolClosedError,
    DeviceRejectedError,
    ProtocolError,
    OverloadedError,
    ShutdownError,
    InternalError,
    RegistryError,
    RecipeUnmarshalError,
    RecipeNotFoundError,
    PersistenceError,
)
from lumenhub.extensions import ExtensionError


class TestLumenError:
    """Tests for base LumenError."""

    def test_basic_error(self):
        """Test creating a basic error."""
        err = LumenError("Something went wrong")
        assert str(err) == "Something went wrong"
        assert err.cause is None

    def test_error_with_cause(self):
        """Test error with underlying cause."""
        cause = ValueError("inner error")
        err = LumenError("Outer error", cause=cause)
        assert "Outer error" in str(err)
        assert "inner error" in str(err)
        assert err.cause is cause

    def test_catch_all_lumen_errors(self):
        """Test that all errors can be caught with LumenError."""
        errors = [
            ConfigurationError("config"),
            UnsupportedError("unsupported"),
            PoolTimeoutError("hub", 1.0),
            ProtocolError("garbled"),
            RegistryError("registry"),
            RecipeUnmarshalError("zoneId", "required", "Zone is required"),
            RecipeNotFoundError("recipe_1"),
            PersistenceError("save failed"),
            ExtensionError("extension"),
        ]

        for err in errors:
            with pytest.raises(LumenError):
                raise err


class TestCommandErrors:
    """Tests for dispatch errors and their kinds."""

    @pytest.mark.parametrize(
        "err,kind",
        [
            (UnsupportedError("x"), ErrorKind.UNSUPPORTED),
            (UnknownEntityError("zone", "z1"), ErrorKind.UNKNOWN_ENTITY),
            (TransportUnavailableError("x"), ErrorKind.TRANSPORT_UNAVAILABLE),
            (PoolTimeoutError("hub", 0.5), ErrorKind.TRANSPORT_UNAVAILABLE),
            (DialError("x"), ErrorKind.TRANSPORT_UNAVAILABLE),
            (PoolClosedError("hub"), ErrorKind.TRANSPORT_UNAVAILABLE),
            (DeviceRejectedError("x"), ErrorKind.DEVICE_REJECTED),
            (ProtocolError("x"), ErrorKind.DEVICE_REJECTED),
            (OverloadedError("x"), ErrorKind.OVERLOADED),
            (ShutdownError("x"), ErrorKind.SHUTDOWN),
            (InternalError("x"), ErrorKind.INTERNAL),
        ],
    )
    def test_kind(self, err, kind):
        assert isinstance(err, CommandError)
        assert err.kind == kind

    def test_kind_override(self):
        err = CommandError("failed in action", kind=ErrorKind.DEVICE_REJECTED)
        assert err.kind == ErrorKind.DEVICE_REJECTED
        assert err.message == "failed in action"

    def test_unknown_entity(self):
        err = UnknownEntityError("scene", "movie")
        assert str(err) == "Unknown scene: movie"
        assert err.entity_type == "scene"
        assert err.entity_id == "movie"

    def test_pool_timeout(self):
        err = PoolTimeoutError("bridge", 0.5)
        assert "0.50s" in str(err)
        assert err.pool_name == "bridge"
        assert err.timeout == 0.5

    @pytest.mark.parametrize(
        "kind,status",
        [
            (ErrorKind.UNSUPPORTED, 400),
            (ErrorKind.UNKNOWN_ENTITY, 400),
            (ErrorKind.TRANSPORT_UNAVAILABLE, 503),
            (ErrorKind.DEVICE_REJECTED, 502),
            (ErrorKind.OVERLOADED, 429),
            (ErrorKind.SHUTDOWN, 503),
            (ErrorKind.INTERNAL, 500),
        ],
    )
    def test_http_status(self, kind, status):
        assert kind.http_status == status


class TestRecipeErrors:
    """Tests for recipe errors."""

    def test_unmarshal_error_dict(self):
        err = RecipeUnmarshalError("zoneId", RecipeUnmarshalError.REQUIRED, "Zone is required")

        assert err.to_dict() == {
            "paramId": "zoneId",
            "errorType": "required",
            "description": "Zone is required",
        }
        assert str(err) == "Zone is required"

    def test_not_found(self):
        err = RecipeNotFoundError("recipe_42")
        assert "recipe_42" in str(err)
        assert err.recipe_id == "recipe_42"
