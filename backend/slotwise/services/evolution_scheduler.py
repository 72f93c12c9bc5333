from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
import random
from time import perf_counter
from typing import Protocol

from slotwise.schemas.generator import GenerationSettingsBase
from slotwise.services.fitness import FitnessBreakdown, FitnessEvaluator
from slotwise.services.schedule_generator import GENE_ATTRIBUTES, ScheduleGenerator
from slotwise.services.snapshot import Chromosome, DomainSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    best: Chromosome
    fitness: float
    breakdown: FitnessBreakdown
    generations_run: int
    stopped_early: bool
    history: tuple[float, ...]
    runtime_ms: int = 0


class SearchObserver(Protocol):
    def on_generation(self, generation: int, best_fitness: float, generation_fitness: float, stagnant: int) -> None:
        ...

    def on_early_stop(self, generation: int, best_fitness: float, stagnant: int) -> None:
        ...

    def on_complete(self, result: SearchResult) -> None:
        ...


class LoggingSearchObserver:
    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def on_generation(self, generation: int, best_fitness: float, generation_fitness: float, stagnant: int) -> None:
        self.log.debug(
            "EVOLUTION GENERATION | generation=%s | best_fitness=%.2f | generation_fitness=%.2f | stagnant=%s",
            generation,
            best_fitness,
            generation_fitness,
            stagnant,
        )

    def on_early_stop(self, generation: int, best_fitness: float, stagnant: int) -> None:
        self.log.info(
            "EVOLUTION EARLY STOP | generation=%s | best_fitness=%.2f | stagnant=%s",
            generation,
            best_fitness,
            stagnant,
        )

    def on_complete(self, result: SearchResult) -> None:
        self.log.info(
            "EVOLUTION COMPLETE | generations=%s | fitness=%.2f | hard_violations=%s | stopped_early=%s | runtime_ms=%s",
            result.generations_run,
            result.fitness,
            result.breakdown.hard_violations,
            result.stopped_early,
            result.runtime_ms,
        )


class EvolutionaryScheduler:
    def __init__(
        self,
        *,
        snapshot: DomainSnapshot,
        settings: GenerationSettingsBase,
        rng: random.Random | None = None,
        observer: SearchObserver | None = None,
    ) -> None:
        if not snapshot.courses:
            raise ValueError("Evolutionary search needs at least one course")
        self.snapshot = snapshot
        self.settings = settings
        self.random = rng if rng is not None else random.Random(settings.random_seed)
        self.observer = observer or LoggingSearchObserver()
        self.generator = ScheduleGenerator(
            snapshot,
            self.random,
            max_courses_per_day=settings.max_courses_per_day,
            max_attempts=settings.max_placement_attempts,
        )
        self.evaluator = FitnessEvaluator(
            snapshot,
            settings.fitness_weights,
            max_courses_per_day=settings.max_courses_per_day,
        )

    def _build_initial_population(self) -> list[Chromosome]:
        return [self.generator.generate() for _ in range(self.settings.population_size)]

    def _evaluate_population(
        self,
        population: list[Chromosome],
        executor: ThreadPoolExecutor | None,
    ) -> list[float]:
        if executor is None:
            return [self.evaluator.evaluate(item) for item in population]
        return list(executor.map(self.evaluator.evaluate, population))

    def _select(self, population: list[Chromosome], fitnesses: list[float]) -> Chromosome:
        contenders = self.random.sample(range(len(population)), self.settings.tournament_size)
        best_index = max(contenders, key=lambda idx: fitnesses[idx])
        return population[best_index]

    def _crossover(self, parent_a: Chromosome, parent_b: Chromosome) -> tuple[Chromosome, Chromosome]:
        cut = self.random.randint(0, len(parent_a) - 1)
        child_a = parent_a[:cut] + parent_b[cut:]
        child_b = parent_b[:cut] + parent_a[cut:]
        return child_a, child_b

    def _mutate(self, chromosome: Chromosome) -> Chromosome:
        genes = list(chromosome)
        changed = False
        for index, gene in enumerate(genes):
            if self.random.random() >= self.settings.mutation_rate:
                continue
            course = self.snapshot.courses_by_id.get(gene.course_id)
            if course is None:
                continue
            attribute = self.random.choice(GENE_ATTRIBUTES)
            genes[index] = self.generator.random_gene(course, attribute, gene)
            changed = True
        return tuple(genes) if changed else chromosome

    def _next_generation(self, ranked_population: list[Chromosome], ranked_fitnesses: list[float]) -> list[Chromosome]:
        size = self.settings.population_size
        next_population = list(ranked_population[: self.settings.elite_count])
        while len(next_population) < size:
            parent_a = self._select(ranked_population, ranked_fitnesses)
            parent_b = self._select(ranked_population, ranked_fitnesses)
            if self.random.random() < self.settings.crossover_rate:
                children = self._crossover(parent_a, parent_b)
            else:
                children = (parent_a, parent_b)
            for child in children:
                if len(next_population) >= size:
                    break
                next_population.append(self._mutate(child))
        return next_population

    def run(self) -> SearchResult:
        start = perf_counter()
        population = self._build_initial_population()
        best: Chromosome = population[0]
        best_fitness = float("-inf")
        stagnant = 0
        stopped_early = False
        generations_run = 0
        history: list[float] = []

        workers = self.settings.evaluation_workers
        executor = ThreadPoolExecutor(max_workers=workers) if workers > 1 else None
        try:
            for generation in range(self.settings.generations):
                fitnesses = self._evaluate_population(population, executor)
                generations_run = generation + 1
                ranked_indices = sorted(range(len(population)), key=lambda idx: fitnesses[idx], reverse=True)
                ranked_population = [population[idx] for idx in ranked_indices]
                ranked_fitnesses = [fitnesses[idx] for idx in ranked_indices]

                generation_fitness = ranked_fitnesses[0]
                if generation_fitness > best_fitness:
                    best = ranked_population[0]
                    best_fitness = generation_fitness
                    stagnant = 0
                else:
                    stagnant += 1
                history.append(best_fitness)
                self.observer.on_generation(generation, best_fitness, generation_fitness, stagnant)

                if stagnant >= self.settings.stagnation_limit:
                    stopped_early = True
                    self.observer.on_early_stop(generation, best_fitness, stagnant)
                    break
                if generation + 1 < self.settings.generations:
                    population = self._next_generation(ranked_population, ranked_fitnesses)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        result = SearchResult(
            best=best,
            fitness=best_fitness,
            breakdown=self.evaluator.breakdown(best),
            generations_run=generations_run,
            stopped_early=stopped_early,
            history=tuple(history),
            runtime_ms=int((perf_counter() - start) * 1000),
        )
        self.observer.on_complete(result)
        return result
