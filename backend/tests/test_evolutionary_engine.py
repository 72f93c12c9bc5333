import random

import pytest

from slotwise.schemas.generator import GenerationSettingsBase
from slotwise.services.evolution_scheduler import EvolutionaryScheduler
from slotwise.services.fitness import FitnessEvaluator
from slotwise.services.snapshot import CourseData, Gene, LecturerData, RoomData, SlotData


class RecordingObserver:
    def __init__(self):
        self.generations = []
        self.early_stops = []
        self.completed = []

    def on_generation(self, generation, best_fitness, generation_fitness, stagnant):
        self.generations.append((generation, best_fitness, generation_fitness, stagnant))

    def on_early_stop(self, generation, best_fitness, stagnant):
        self.early_stops.append((generation, best_fitness, stagnant))

    def on_complete(self, result):
        self.completed.append(result)


def _settings(**overrides):
    values = {
        "population_size": 20,
        "generations": 15,
        "mutation_rate": 0.2,
        "crossover_rate": 0.8,
        "elite_count": 2,
        "tournament_size": 3,
        "stagnation_limit": 50,
        "random_seed": 1234,
    }
    values.update(overrides)
    return GenerationSettingsBase(**values)


def test_best_fitness_history_never_decreases(snapshot):
    observer = RecordingObserver()
    result = EvolutionaryScheduler(snapshot=snapshot, settings=_settings(), observer=observer).run()

    assert len(result.history) == result.generations_run
    assert all(later >= earlier for earlier, later in zip(result.history, result.history[1:]))
    assert result.fitness == result.history[-1]
    assert observer.completed == [result]


def test_result_is_a_complete_chromosome_in_course_order(snapshot):
    result = EvolutionaryScheduler(snapshot=snapshot, settings=_settings()).run()

    assert [gene.course_id for gene in result.best] == ["c1", "c2", "c3"]
    assert result.fitness == FitnessEvaluator(snapshot).evaluate(result.best)
    assert result.breakdown.score == result.fitness


def test_same_seed_reproduces_the_search(snapshot):
    first = EvolutionaryScheduler(snapshot=snapshot, settings=_settings(), rng=random.Random(99)).run()
    second = EvolutionaryScheduler(snapshot=snapshot, settings=_settings(), rng=random.Random(99)).run()

    assert first.best == second.best
    assert first.history == second.history


def test_stagnation_stops_search_early(snapshot):
    observer = RecordingObserver()
    settings = _settings(generations=200, stagnation_limit=3)
    result = EvolutionaryScheduler(snapshot=snapshot, settings=settings, observer=observer).run()

    assert result.stopped_early
    assert result.generations_run < 200
    assert len(observer.early_stops) == 1
    assert observer.generations[-1][3] == 3


def test_generation_cap_bounds_the_run(snapshot):
    result = EvolutionaryScheduler(snapshot=snapshot, settings=_settings(generations=4)).run()

    assert result.generations_run == 4
    assert not result.stopped_early


def test_parallel_evaluation_matches_serial(snapshot):
    serial = EvolutionaryScheduler(
        snapshot=snapshot,
        settings=_settings(),
        rng=random.Random(5),
    ).run()
    parallel = EvolutionaryScheduler(
        snapshot=snapshot,
        settings=_settings(evaluation_workers=4),
        rng=random.Random(5),
    ).run()

    assert parallel.best == serial.best
    assert parallel.history == serial.history


def test_search_returns_best_even_when_conflicts_remain(make_snapshot):
    # Two courses, one room, one slot, one day: every schedule collides.
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
    result = EvolutionaryScheduler(snapshot=snapshot, settings=_settings(generations=3)).run()

    assert len(result.best) == 2
    assert result.breakdown.room_conflicts == 1
    assert result.breakdown.lecturer_conflicts == 1


def test_crossover_uses_a_single_cut(snapshot):
    scheduler = EvolutionaryScheduler(snapshot=snapshot, settings=_settings(), rng=random.Random(3))
    parent_a = tuple(Gene(course.id, "r1", "l1", "MONDAY", 1) for course in snapshot.courses)
    parent_b = tuple(Gene(course.id, "r3", "l2", "FRIDAY", 4) for course in snapshot.courses)

    child_a, child_b = scheduler._crossover(parent_a, parent_b)

    cut = next((index for index, gene in enumerate(child_a) if gene in parent_b), len(child_a))
    assert child_a == parent_a[:cut] + parent_b[cut:]
    assert child_b == parent_b[:cut] + parent_a[cut:]


def test_mutation_rate_zero_keeps_chromosome(snapshot):
    scheduler = EvolutionaryScheduler(snapshot=snapshot, settings=_settings(mutation_rate=0.0))
    chromosome = scheduler.generator.generate()
    assert scheduler._mutate(chromosome) is chromosome


def test_empty_course_set_is_rejected(make_snapshot):
    with pytest.raises(ValueError):
        EvolutionaryScheduler(snapshot=make_snapshot(courses=()), settings=_settings())


def test_settings_validate_elite_and_tournament_sizes():
    with pytest.raises(ValueError):
        GenerationSettingsBase(population_size=5, elite_count=5)
    with pytest.raises(ValueError):
        GenerationSettingsBase(population_size=5, elite_count=1, tournament_size=6)
