from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Protocol

import requests

from slotwise.core.config import Settings
from slotwise.core.exceptions import SchedulerError
from slotwise.schemas.settings import minutes_to_time, normalize_day
from slotwise.services.snapshot import Chromosome, DomainSnapshot, Gene

logger = logging.getLogger(__name__)

JSON_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```", re.IGNORECASE)

BODY_CHUNK_SIZE = 8192

SYSTEM_PROMPT = "You are a timetable scheduling assistant. Generate a conflict-free timetable in JSON format."


class AIServiceError(SchedulerError):
    """The AI collaborator could not be reached or answered with an unusable envelope."""


class InvalidAIResponseError(SchedulerError):
    """The AI answer does not describe a usable timetable."""


class AIScheduleClient(Protocol):
    def complete(self, prompt: str) -> str:
        ...


def build_prompt(snapshot: DomainSnapshot, academic_year: str, semester: int, max_courses_per_day: int) -> str:
    lines = [
        f"Generate a university timetable for academic year {academic_year}, semester {semester}.",
        "Ensure no conflicts in room or lecturer scheduling and respect lecturer availability.",
        "",
        "Courses (Code, Name, Department, Year, Enrolled Students, Requires Lab):",
    ]
    for course in snapshot.courses:
        lines.append(
            f"[{course.code}, {course.name}, {course.department}, {course.year_level}, "
            f"{course.enrollment_count}, {'Yes' if course.requires_lab else 'No'}]"
        )
    lines.extend(["", "Rooms (ID, Name, Capacity, Type, Department):"])
    for room in snapshot.rooms:
        lines.append(f"[{room.id}, {room.name}, {room.capacity}, {room.type}, {room.department or 'Any'}]")
    lines.extend(["", "Lecturers (ID, Name, Department):"])
    for lecturer in snapshot.lecturers:
        lines.append(f"[{lecturer.id}, {lecturer.name}, {lecturer.department}]")
    lines.extend(["", "Time Slots (ID, Start, End):"])
    for slot in snapshot.slots:
        lines.append(f"[{slot.id}, {minutes_to_time(slot.start)}, {minutes_to_time(slot.end)}]")
    lines.extend(["", "Availabilities (Lecturer ID, Day, Start, End):"])
    for lecturer in snapshot.lecturers:
        for window in lecturer.availability:
            lines.append(
                f"[{lecturer.id}, {window.day}, {minutes_to_time(window.start)}, {minutes_to_time(window.end)}]"
            )
    lines.extend(
        [
            "",
            "Constraints:",
            "- Ensure rooms have sufficient capacity for the number of students enrolled in each course.",
            "- Respect lecturer availability strictly (only schedule within their available times).",
            "- Avoid scheduling the same lecturer or room for multiple courses at the same time on the same day.",
            f"- Limit each lecturer to a maximum of {max_courses_per_day} courses per day.",
            "- Lab courses must be assigned to lab rooms.",
            f"- Valid days are: {', '.join(snapshot.days)}.",
            "",
            "Return exactly one entry per course as a JSON array of objects with fields: "
            "course_code, room_id, timeslot_id, lecturer_id, day.",
            "Output format: ```json\n[]\n```",
        ]
    )
    return "\n".join(lines)


def parse_ai_response(content: str) -> Any:
    """Extract the JSON payload from a fenced block or from the raw text."""
    if not isinstance(content, str) or not content.strip():
        raise InvalidAIResponseError("AI response is empty")
    match = JSON_BLOCK_PATTERN.search(content)
    raw = match.group(1) if match else content.strip()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidAIResponseError("AI response is not valid JSON", details={"error": str(exc)}) from exc
    logger.debug("AI RESPONSE PARSED | fenced=%s | type=%s", match is not None, type(payload).__name__)
    return payload


def _coerce_slot_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def validate_ai_schedule(payload: Any, snapshot: DomainSnapshot) -> Chromosome:
    """Turn a parsed AI payload into a chromosome covering every course once."""
    if not isinstance(payload, list) or not payload:
        raise InvalidAIResponseError("AI response must be a non-empty list of entries")

    genes_by_course: dict[str, Gene] = {}
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise InvalidAIResponseError("AI entry is not an object", details={"index": index})
        course_ref = item.get("course_code", item.get("course_id"))
        room_id = item.get("room_id")
        slot_id = _coerce_slot_id(item.get("timeslot_id", item.get("time_slot_id")))
        if not course_ref or not room_id or slot_id is None:
            raise InvalidAIResponseError(
                "AI entry is missing course_code, room_id or timeslot_id",
                details={"index": index},
            )

        course = snapshot.courses_by_code.get(str(course_ref)) or snapshot.courses_by_id.get(str(course_ref))
        if course is None:
            raise InvalidAIResponseError("AI entry references an unknown course", details={"index": index})
        if str(room_id) not in snapshot.rooms_by_id:
            raise InvalidAIResponseError("AI entry references an unknown room", details={"index": index})
        if slot_id not in snapshot.slots_by_id:
            raise InvalidAIResponseError("AI entry references an unknown time slot", details={"index": index})
        if course.id in genes_by_course:
            raise InvalidAIResponseError("AI response schedules a course twice", details={"course": course.code})

        lecturer_id = item.get("lecturer_id")
        if lecturer_id:
            if str(lecturer_id) not in snapshot.lecturers_by_id:
                raise InvalidAIResponseError("AI entry references an unknown lecturer", details={"index": index})
            lecturer_id = str(lecturer_id)
        elif course.lecturer_id and course.lecturer_id in snapshot.lecturers_by_id:
            lecturer_id = course.lecturer_id
        else:
            department_lecturers = [other.id for other in snapshot.lecturers if other.department == course.department]
            if not department_lecturers:
                raise InvalidAIResponseError("No lecturer can be inferred for course", details={"course": course.code})
            lecturer_id = department_lecturers[0]

        raw_day = item.get("day")
        if raw_day:
            try:
                day = normalize_day(str(raw_day))
            except ValueError as exc:
                raise InvalidAIResponseError("AI entry has an invalid day", details={"index": index}) from exc
            if day not in snapshot.days:
                raise InvalidAIResponseError("AI entry uses a non-working day", details={"index": index})
        else:
            day = snapshot.days[index % len(snapshot.days)]

        genes_by_course[course.id] = Gene(course.id, str(room_id), lecturer_id, day, slot_id)

    missing = [course.code for course in snapshot.courses if course.id not in genes_by_course]
    if missing:
        raise InvalidAIResponseError("AI response does not cover every course", details={"missing": missing})
    return tuple(genes_by_course[course.id] for course in snapshot.courses)


class HttpAIScheduleClient:
    """Chat-completion client whose timeout bounds the whole request, body included."""

    def __init__(
        self,
        *,
        url: str,
        api_key: str | None,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpAIScheduleClient | None":
        if not settings.ai_enabled or not settings.ai_service_url:
            return None
        return cls(
            url=settings.ai_service_url,
            api_key=settings.ai_api_key,
            model=settings.ai_model,
            temperature=settings.ai_temperature,
            max_tokens=settings.ai_max_tokens,
            timeout_seconds=settings.ai_timeout_seconds,
        )

    def complete(self, prompt: str) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        deadline = time.monotonic() + self.timeout_seconds
        try:
            response = self.session.post(
                self.url,
                json=body,
                headers=headers,
                timeout=self.timeout_seconds,
                stream=True,
            )
            try:
                response.raise_for_status()
                raw = self._read_body(response, deadline)
            finally:
                response.close()
            return json.loads(raw)["choices"][0]["message"]["content"]
        except requests.RequestException as exc:
            raise AIServiceError("AI service request failed", details={"error": str(exc)}) from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise AIServiceError("AI service returned an unexpected envelope", details={"error": str(exc)}) from exc

    def _read_body(self, response: requests.Response, deadline: float) -> bytes:
        """Read the streamed body, giving up once the whole request outlives the timeout."""
        chunks: list[bytes] = []
        for chunk in response.iter_content(chunk_size=BODY_CHUNK_SIZE):
            if time.monotonic() > deadline:
                raise AIServiceError(
                    "AI service request exceeded its deadline",
                    details={"timeout_seconds": self.timeout_seconds},
                )
            chunks.append(chunk)
        return b"".join(chunks)
