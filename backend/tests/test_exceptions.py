import pytest

from slotwise.core.exceptions import (
    AppError,
    GenerationError,
    GenerationInProgressError,
    NoTimeSlotsError,
    ResourceNotFoundError,
    SchedulerError,
)
from slotwise.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


def test_scheduler_error_structure():
    err = SchedulerError(message="Test error", details={"foo": "bar"})
    assert err.status_code == 400
    assert err.message == "Test error"
    assert err.details == {"foo": "bar"}
    assert isinstance(err, AppError)


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}


def test_missing_resource_errors_name_the_resource():
    err = NoTimeSlotsError("2024/2025", 2)
    assert err.status_code == 422
    assert err.message == "No time slots available for timetable generation"
    assert err.details == {"resource": "time slots", "academic_year": "2024/2025", "semester": 2}


def test_generation_errors_keep_their_cause():
    cause = ValueError("bad gene")
    err = GenerationError("Timetable generation failed", cause=cause)
    assert err.cause is cause
    assert err.message == "Timetable generation failed: bad gene"
    assert GenerationInProgressError("2024/2025", 1).status_code == 409


def test_app_errors_are_rendered_as_json(client):
    response = client.get("/api/conflicts/ghost/suggestions")

    assert response.status_code == 404
    assert response.json() == {
        "message": str(ResourceNotFoundError("TimetableEntry", "ghost")),
        "details": {"resource_type": "TimetableEntry", "resource_id": "ghost"},
    }


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema compatibility bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility()
