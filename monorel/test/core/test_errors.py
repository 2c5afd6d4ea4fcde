"""Tests for monorel.core.errors module."""

from __future__ import annotations

from monorel.core.errors import (
    ErrorCode,
    MonorelError,
    conflict,
    exit_code_for,
    invalid_bump,
    not_found,
    parse_error,
    transient,
)


class TestErrorCode:
    """Exit codes are stable."""

    def test_values(self) -> None:
        assert ErrorCode.OK == 0
        assert ErrorCode.USER_ERROR == 1
        assert ErrorCode.ENV_ERROR == 2
        assert ErrorCode.PARSE_ERROR == 3
        assert ErrorCode.NETWORK_ERROR == 4
        assert ErrorCode.NOT_FOUND == 5
        assert ErrorCode.CONFLICT == 6

    def test_str(self) -> None:
        assert str(ErrorCode.NETWORK_ERROR) == "network error"

    def test_success_flags(self) -> None:
        assert ErrorCode.OK.is_success
        assert ErrorCode.CONFLICT.is_error


class TestHelpers:
    """Helper constructors set the kind."""

    def test_kinds(self) -> None:
        assert not_found("x").kind == "not_found"
        assert transient("x").kind == "transient"
        assert parse_error("x").kind == "parse_error"
        assert conflict("x").kind == "conflict"
        assert invalid_bump("x").kind == "invalid_bump"

    def test_path_and_hint(self) -> None:
        error = parse_error("invalid TOML", path="Cargo.toml", hint="line 3")
        assert error.path == "Cargo.toml"
        assert error.hint == "line 3"

    def test_retryable(self) -> None:
        assert transient("x").is_retryable
        assert conflict("x").is_retryable
        assert not not_found("x").is_retryable


class TestPretty:
    """pretty() renders one line."""

    def test_message_only(self) -> None:
        assert MonorelError(kind="conflict", message="branch moved").pretty() == "branch moved"

    def test_with_path_and_hint(self) -> None:
        error = not_found("file not found", path="a/Cargo.toml", hint="at abc")
        assert error.pretty() == "file not found (a/Cargo.toml): at abc"

    def test_path_not_repeated(self) -> None:
        error = not_found("cannot read a/Cargo.toml", path="a/Cargo.toml")
        assert error.pretty() == "cannot read a/Cargo.toml"


class TestExitCodeFor:
    """Every kind maps to an exit code."""

    def test_mapping(self) -> None:
        assert exit_code_for("not_found") == ErrorCode.NOT_FOUND
        assert exit_code_for("transient") == ErrorCode.NETWORK_ERROR
        assert exit_code_for("parse_error") == ErrorCode.PARSE_ERROR
        assert exit_code_for("conflict") == ErrorCode.CONFLICT
        assert exit_code_for("nothing_to_release") == ErrorCode.USER_ERROR
        assert exit_code_for("invalid_bump") == ErrorCode.USER_ERROR
        assert exit_code_for("unsupported") == ErrorCode.ENV_ERROR
        assert exit_code_for("permission_denied") == ErrorCode.ENV_ERROR
