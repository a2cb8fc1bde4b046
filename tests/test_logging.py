"""Tests for the structured operation log and console logging setup."""
from __future__ import annotations

import io
import json
import logging
from pathlib import Path

import pytest
from rich.console import Console

from space_services.logging import StructuredLogger, configure_console_logging


def _records(logger: StructuredLogger) -> list[dict[str, object]]:
    text = logger.path.read_text(encoding="utf-8")
    return [json.loads(line) for line in text.splitlines()]


def test_structured_logger_disables_when_directory_unavailable(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Logger gracefully disables itself when log directory cannot be created."""
    log_dir = tmp_path / "logs"

    original_mkdir = Path.mkdir

    def fail_mkdir(self: Path, *args: object, **kwargs: object) -> None:
        if self == log_dir:
            raise PermissionError("no access")
        original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fail_mkdir)

    logger = StructuredLogger(log_dir)
    assert logger._enabled is False  # type: ignore[attr-defined]

    with logger.operation("ss", args={"json": False}) as op:
        op.success("done")


def test_structured_logger_disables_after_write_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Write failures mark the logger disabled so subsequent writes are skipped."""
    logger = StructuredLogger(tmp_path / "logs")
    operations_path = logger.path

    original_open = Path.open

    def fail_once(self: Path, *args: object, **kwargs: object) -> object:
        if self == operations_path:
            raise OSError("disk full")
        return original_open(self, *args, **kwargs)

    monkeypatch.setattr(Path, "open", fail_once)

    with logger.operation("ss") as op:
        op.success("done")

    assert logger._enabled is False  # type: ignore[attr-defined]

    with logger.operation("ss") as op:
        op.success("done")


def test_success_record_shape(tmp_path: Path) -> None:
    """Each operation appends one JSON line."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("ss", args={"json": True}, target={"kind": "space"}) as op:
        op.target["space"] = "dev"
        op.success("Listed service instances.", context={"instances": 3})
    with logger.operation("root --version") as op:
        op.success("Reported CLI version.")

    first, second = _records(logger)
    assert first["command"] == "ss"
    assert first["args"] == {"json": True}
    assert first["target"] == {"kind": "space", "space": "dev"}
    assert first["result"]["status"] == "success"  # type: ignore[index]
    assert first["result"]["context"] == {"instances": 3}  # type: ignore[index]
    assert set(first["result"]) == {  # type: ignore[arg-type]
        "status",
        "message",
        "rc",
        "warnings",
        "errors",
        "context",
    }
    assert second["command"] == "root --version"


def test_operation_scope_warning_sanitises_context(tmp_path: Path) -> None:
    """Warnings should be recorded with JSON-safe context values."""
    logger = StructuredLogger(tmp_path / "logs")

    class Custom:
        def __str__(self) -> str:
            return "<custom>"

    with logger.operation("ss", args={"path": Path("foo")}) as op:
        op.warning(
            "warned",
            warnings=("lookup failed",),
            errors=("err",),
            context={"path": Path("/var/lib"), "obj": Custom()},
        )

    result = _records(logger)[0]["result"]
    assert result["status"] == "warning"  # type: ignore[index]
    assert result["warnings"] == ["lookup failed"]  # type: ignore[index]
    assert result["errors"] == ["err"]  # type: ignore[index]
    assert result["context"] == {"path": "/var/lib", "obj": "<custom>"}  # type: ignore[index]


def test_operation_scope_error_defaults_error_list(tmp_path: Path) -> None:
    """Errors should default to the message when not provided."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation("ss") as op:
        op.error("boom", errors=None, rc=3, context={"value": {1, 2}})

    result = _records(logger)[0]["result"]
    assert result["status"] == "error"  # type: ignore[index]
    assert result["errors"] == ["boom"]  # type: ignore[index]
    assert result["rc"] == 3  # type: ignore[index]
    assert result["context"] == {"value": "{1, 2}"}  # type: ignore[index]


def test_unhandled_exception_is_recorded(tmp_path: Path) -> None:
    """Exceptions escaping a scope are logged and re-raised."""
    logger = StructuredLogger(tmp_path / "logs")

    with pytest.raises(ValueError, match="kaput"):
        with logger.operation("ss"):
            raise ValueError("kaput")

    result = _records(logger)[0]["result"]
    assert result["status"] == "error"  # type: ignore[index]
    assert "kaput" in result["message"]  # type: ignore[index]


def test_configure_console_logging_levels() -> None:
    """Debug mode shows debug records; otherwise only warnings."""
    buffer = io.StringIO()
    console = Console(file=buffer, width=200, color_system=None)

    logger = configure_console_logging(console, debug=False)
    logging.getLogger("space_services.resolver").debug("hidden trace")
    logging.getLogger("space_services.resolver").warning("visible warning")

    assert "hidden trace" not in buffer.getvalue()
    assert "visible warning" in buffer.getvalue()

    configure_console_logging(console, debug=True)
    logging.getLogger("space_services.lister").debug("Getting service instances")

    assert "Getting service instances" in buffer.getvalue()
    assert len(logger.handlers) == 1
