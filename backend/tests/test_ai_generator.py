import json
from types import SimpleNamespace

import pytest
import requests

from slotwise.core.config import Settings
from slotwise.services import ai_generator
from slotwise.services.ai_generator import (
    AIServiceError,
    HttpAIScheduleClient,
    InvalidAIResponseError,
    build_prompt,
    parse_ai_response,
    validate_ai_schedule,
)
from slotwise.services.snapshot import AvailabilityWindowData, Gene, LecturerData


class StubResponse:
    def __init__(self, payload=None, status_error=None, chunks=None):
        self.payload = payload
        self.status_error = status_error
        self.chunks = chunks
        self.closed = False

    def raise_for_status(self):
        if self.status_error is not None:
            raise self.status_error

    def iter_content(self, chunk_size=1):
        if self.chunks is not None:
            yield from self.chunks
            return
        yield json.dumps(self.payload).encode("utf-8")

    def close(self):
        self.closed = True


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def full_payload():
    return [
        {"course_code": "CS101", "room_id": "r1", "timeslot_id": 1, "lecturer_id": "l1", "day": "Monday"},
        {"course_code": "CS201", "room_id": "r2", "timeslot_id": "2", "day": "TUESDAY"},
        {"course_id": "c3", "room_id": "r1", "time_slot_id": 3},
    ]


def test_prompt_describes_the_problem(make_snapshot):
    snapshot = make_snapshot(
        lecturers=(
            LecturerData(
                "l1",
                "Ada Lovelace",
                "CS",
                availability=(AvailabilityWindowData("TUESDAY", 9 * 60, 12 * 60),),
            ),
        )
    )
    prompt = build_prompt(snapshot, "2024/2025", 1, 3)

    assert "academic year 2024/2025, semester 1" in prompt
    assert "[CS201, Data Structures Lab, CS, 2, 25, Yes]" in prompt
    assert "[l1, TUESDAY, 09:00, 12:00]" in prompt
    assert "maximum of 3 courses per day" in prompt
    assert "course_code, room_id, timeslot_id" in prompt


def test_parse_fenced_and_raw_json():
    assert parse_ai_response('Here you go:\n```json\n[{"a": 1}]\n```') == [{"a": 1}]
    assert parse_ai_response('[{"a": 2}]') == [{"a": 2}]


@pytest.mark.parametrize("content", ["", "   ", "not json at all", "```json\n{broken\n```"])
def test_parse_rejects_unusable_text(content):
    with pytest.raises(InvalidAIResponseError):
        parse_ai_response(content)


def test_validate_accepts_complete_schedule(snapshot):
    chromosome = validate_ai_schedule(full_payload(), snapshot)

    assert chromosome == (
        Gene("c1", "r1", "l1", "MONDAY", 1),
        Gene("c2", "r2", "l2", "TUESDAY", 2),
        Gene("c3", "r1", "l3", "WEDNESDAY", 3),
    )


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"entries": []},
        ["CS101"],
        [{"course_code": "CS101", "room_id": "r1"}],
    ],
)
def test_validate_rejects_wrong_shapes(snapshot, payload):
    with pytest.raises(InvalidAIResponseError):
        validate_ai_schedule(payload, snapshot)


@pytest.mark.parametrize(
    "index, changes",
    [
        (0, {"course_code": "XX999"}),
        (0, {"room_id": "ghost"}),
        (0, {"timeslot_id": 99}),
        (0, {"lecturer_id": "ghost"}),
        (0, {"day": "Caturday"}),
        (0, {"day": "SUNDAY"}),
        (1, {"course_code": "CS101"}),
    ],
)
def test_validate_rejects_unknown_or_duplicate_references(snapshot, index, changes):
    payload = full_payload()
    payload[index].update(changes)
    with pytest.raises(InvalidAIResponseError):
        validate_ai_schedule(payload, snapshot)


def test_validate_requires_every_course(snapshot):
    with pytest.raises(InvalidAIResponseError) as exc_info:
        validate_ai_schedule(full_payload()[:2], snapshot)
    assert exc_info.value.details["missing"] == ["MA101"]


def test_http_client_posts_chat_completion_with_timeout():
    content = json.dumps(full_payload())
    session = StubSession(StubResponse({"choices": [{"message": {"content": content}}]}))
    client = HttpAIScheduleClient(
        url="https://ai.example.test/v1/chat/completions",
        api_key="secret",
        model="gpt-test",
        timeout_seconds=12.5,
        session=session,
    )

    assert client.complete("make a timetable") == content
    url, kwargs = session.calls[0]
    assert url == "https://ai.example.test/v1/chat/completions"
    assert kwargs["timeout"] == 12.5
    assert kwargs["stream"] is True
    assert session.response.closed
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["json"]["model"] == "gpt-test"
    assert kwargs["json"]["messages"][-1] == {"role": "user", "content": "make a timetable"}


@pytest.mark.parametrize(
    "session",
    [
        StubSession(error=requests.Timeout("slow")),
        StubSession(StubResponse(status_error=requests.HTTPError("503"))),
        StubSession(StubResponse({"unexpected": True})),
    ],
)
def test_http_client_wraps_failures(session):
    client = HttpAIScheduleClient(url="https://ai.example.test", api_key=None, model="m", session=session)
    with pytest.raises(AIServiceError):
        client.complete("prompt")


def test_http_client_enforces_a_total_deadline_on_slow_bodies(monkeypatch):
    clock = iter([100.0, 101.0, 106.0])
    monkeypatch.setattr(ai_generator, "time", SimpleNamespace(monotonic=lambda: next(clock)))
    response = StubResponse(chunks=[b'{"choices": ', b"[]}"])
    client = HttpAIScheduleClient(
        url="https://ai.example.test",
        api_key=None,
        model="m",
        timeout_seconds=5,
        session=StubSession(response),
    )

    with pytest.raises(AIServiceError) as exc_info:
        client.complete("prompt")

    assert "deadline" in exc_info.value.message
    assert response.closed


def test_client_from_settings_requires_enabled_url():
    assert HttpAIScheduleClient.from_settings(Settings(ai_enabled=False, ai_service_url="https://x.test")) is None
    assert HttpAIScheduleClient.from_settings(Settings(ai_enabled=True, ai_service_url=None)) is None

    client = HttpAIScheduleClient.from_settings(
        Settings(ai_enabled=True, ai_service_url="https://x.test", ai_timeout_seconds=5)
    )
    assert client is not None
    assert client.timeout_seconds == 5
