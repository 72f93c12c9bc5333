import random

import pytest

from slotwise.services.schedule_generator import GENE_ATTRIBUTES, PlacementExhausted, ScheduleGenerator
from slotwise.services.snapshot import AvailabilityWindowData, CourseData, LecturerData, RoomData, SlotData


def _assert_complete(chromosome, snapshot):
    assert [gene.course_id for gene in chromosome] == [course.id for course in snapshot.courses]
    for gene in chromosome:
        assert gene.room_id in snapshot.rooms_by_id
        assert gene.lecturer_id in snapshot.lecturers_by_id
        assert gene.day in snapshot.days
        assert gene.time_slot_id in snapshot.slots_by_id


def test_room_candidates_respect_capacity_department_and_lab(snapshot):
    generator = ScheduleGenerator(snapshot, random.Random(1))

    intro = snapshot.courses_by_id["c1"]
    lab_course = snapshot.courses_by_id["c2"]
    calculus = snapshot.courses_by_id["c3"]

    assert {room.id for room in generator.room_candidates(intro)} == {"r1", "r3"}
    assert {room.id for room in generator.room_candidates(lab_course)} == {"r2"}
    assert {room.id for room in generator.room_candidates(calculus)} == {"r1"}


def test_lecturer_candidates_keep_department_and_assigned_lecturer(make_snapshot):
    snapshot = make_snapshot(
        courses=(CourseData("c1", "CS101", "Intro", "CS", 1, 20, lecturer_id="l3"),),
    )
    generator = ScheduleGenerator(snapshot, random.Random(1))

    candidates = {lecturer.id for lecturer in generator.lecturer_candidates(snapshot.courses[0])}
    assert candidates == {"l1", "l2", "l3"}


def test_strict_pass_produces_conflict_free_complete_schedule(snapshot):
    generator = ScheduleGenerator(snapshot, random.Random(7))
    chromosome = generator.strict_pass()

    _assert_complete(chromosome, snapshot)
    room_keys = [(gene.room_id, gene.day, gene.time_slot_id) for gene in chromosome]
    lecturer_keys = [(gene.lecturer_id, gene.day, gene.time_slot_id) for gene in chromosome]
    assert len(set(room_keys)) == len(room_keys)
    assert len(set(lecturer_keys)) == len(lecturer_keys)


def test_strict_pass_honours_declared_availability(make_snapshot):
    snapshot = make_snapshot(
        courses=(CourseData("c1", "CS101", "Intro", "CS", 1, 20, lecturer_id="l1"),),
        lecturers=(
            LecturerData(
                "l1",
                "Ada",
                "CS",
                availability=(AvailabilityWindowData("THURSDAY", 10 * 60, 12 * 60),),
            ),
        ),
    )
    generator = ScheduleGenerator(snapshot, random.Random(3), max_attempts=500)

    gene = generator.strict_pass()[0]
    assert gene.day == "THURSDAY"
    assert gene.time_slot_id in {3, 4}


def test_strict_pass_fails_fast_without_candidates(make_snapshot):
    snapshot = make_snapshot(
        courses=(CourseData("c9", "BIG100", "Huge Lecture", "CS", 1, 500),),
    )
    generator = ScheduleGenerator(snapshot, random.Random(1))

    with pytest.raises(PlacementExhausted) as exc_info:
        generator.strict_pass()
    assert exc_info.value.course_id == "c9"
    assert exc_info.value.attempts == 0


def test_strict_pass_exhausts_attempt_budget(make_snapshot):
    snapshot = make_snapshot(
        courses=(
            CourseData("c1", "CS101", "Intro", "CS", 1, 10, lecturer_id="l1"),
            CourseData("c2", "CS102", "Intro II", "CS", 1, 10, lecturer_id="l1"),
        ),
        rooms=(RoomData("r1", "Only Room", 20, "seminar", "Main"),),
        lecturers=(LecturerData("l1", "Ada", "CS"),),
        slots=(SlotData(1, 8 * 60, 9 * 60),),
        days=("MONDAY",),
    )
    generator = ScheduleGenerator(snapshot, random.Random(1), max_attempts=5)

    with pytest.raises(PlacementExhausted) as exc_info:
        generator.strict_pass()
    assert exc_info.value.course_id == "c2"
    assert exc_info.value.attempts == 5


def test_generate_falls_back_to_relaxed_pass(make_snapshot):
    snapshot = make_snapshot(
        courses=(CourseData("c9", "BIG100", "Huge Lecture", "CS", 1, 500),),
    )
    generator = ScheduleGenerator(snapshot, random.Random(1))

    chromosome = generator.generate()
    _assert_complete(chromosome, snapshot)


def test_relaxed_pass_is_independently_callable(snapshot):
    chromosome = ScheduleGenerator(snapshot, random.Random(5)).relaxed_pass()
    _assert_complete(chromosome, snapshot)


def test_same_seed_gives_same_schedule(snapshot):
    first = ScheduleGenerator(snapshot, random.Random(42)).generate()
    second = ScheduleGenerator(snapshot, random.Random(42)).generate()
    assert first == second


@pytest.mark.parametrize("attribute", GENE_ATTRIBUTES)
def test_random_gene_changes_only_requested_attribute(snapshot, attribute):
    generator = ScheduleGenerator(snapshot, random.Random(11))
    gene = generator.strict_pass()[0]
    course = snapshot.courses_by_id[gene.course_id]

    mutated = generator.random_gene(course, attribute, gene)

    field_by_attribute = {
        "room": "room_id",
        "lecturer": "lecturer_id",
        "day": "day",
        "time_slot": "time_slot_id",
    }
    for name in ("room_id", "lecturer_id", "day", "time_slot_id"):
        if name != field_by_attribute[attribute]:
            assert getattr(mutated, name) == getattr(gene, name)


def test_random_gene_rejects_unknown_attribute(snapshot):
    generator = ScheduleGenerator(snapshot, random.Random(1))
    gene = generator.relaxed_pass()[0]
    with pytest.raises(ValueError):
        generator.random_gene(snapshot.courses[0], "building", gene)
