"""Tests for the scheduling strategies."""

from __future__ import annotations

import itertools
from datetime import date

import pytest

from planner.data.models import Algorithm, EngineSettings
from planner.domains import DomainCalculator
from planner.grid import IsoWeek, Slot, generate_slots
from planner.solvers import (
    SOLVERS,
    BacktrackingSolver,
    CostWeights,
    CpSatSolver,
    GreedySolver,
    MinConflictSolver,
    SimulatedAnnealingSolver,
    TimeBudget,
    create_solver,
    detect_conflicts,
    mrv_order,
)
from planner.solvers.base import Placement
from planner.tasks import Task, TaskId

DAY = date(2025, 10, 27)
W44 = IsoWeek(2025, 44)

ALL_ALGORITHMS = list(Algorithm)


def make_task(person: str, rank: int, duration: int = 15, priority: int = 1, week=W44) -> Task:
    return Task(TaskId(person, person.rsplit("_", 1)[0], week), duration=duration, priority=priority, rank=rank)


def starts(*minutes: int) -> list[Slot]:
    return [Slot(DAY, m) for m in minutes]


def assert_valid(result, tasks, domains, room_count):
    """Partition, domain, room and person invariants."""
    ids = {t.id for t in tasks}
    assert set(result.assignment) | set(result.unscheduled) == ids
    assert not set(result.assignment) & set(result.unscheduled)
    for task_id, placement in result.assignment.items():
        assert placement.slot in domains[task_id]
        assert 1 <= placement.room <= room_count
    assert detect_conflicts(result.assignment, tasks) == []


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(time_budget=10.0)


@pytest.fixture
def busy_day():
    """Six people sharing one Monday, two of them needing half an hour."""
    tasks = [
        make_task("teacher_1", 0, duration=30, priority=2),
        make_task("teacher_2", 1, duration=30, priority=2),
        make_task("staff_1", 2, priority=1, week=None),
        make_task("staff_2", 3, priority=1, week=None),
        make_task("staff_3", 4, priority=1, week=None),
        make_task("staff_4", 5, priority=1, week=None),
    ]
    slots = generate_slots(DAY, DAY)
    domains = DomainCalculator(slots).calculate(tasks).domains
    return tasks, domains


@pytest.fixture
def same_person():
    """One person needing two appointments that can only start at 09:00."""
    tasks = [make_task("teacher_1", 0), make_task("teacher_1", 1, week=None)]
    domains = {t.id: starts(540) for t in tasks}
    return tasks, domains


@pytest.fixture
def one_slot_two_people():
    """Two people, one room, a single shared slot."""
    low = make_task("staff_1", 0, priority=1)
    high = make_task("teacher_1", 1, priority=2)
    domains = {low.id: starts(540), high.id: starts(540)}
    return [low, high], domains


@pytest.fixture
def greedy_trap():
    """First-fit blocks the second task; reordering the first fixes it."""
    a = make_task("teacher_1", 0, duration=30)
    b = make_task("teacher_2", 1)
    c = make_task("teacher_3", 2)
    domains = {a.id: starts(540, 555), b.id: starts(540, 555), c.id: starts(570, 600)}
    return [a, b, c], domains


# =============================================================================
# Shared Behaviour
# =============================================================================

class TestAllSolvers:
    """Behaviour every strategy shares."""

    @pytest.mark.parametrize("algorithm", ALL_ALGORITHMS)
    def test_single_task(self, algorithm, settings):
        task = make_task("teacher_1", 0)
        domains = {task.id: starts(540, 555, 570)}
        result = create_solver(algorithm, settings, seed=1).solve([task], domains, 1)
        assert result.is_complete
        assert_valid(result, [task], domains, 1)

    @pytest.mark.parametrize("algorithm", ALL_ALGORITHMS)
    def test_invariants(self, algorithm, settings, busy_day):
        tasks, domains = busy_day
        result = create_solver(algorithm, settings, seed=7).solve(tasks, domains, 2)
        assert_valid(result, tasks, domains, 2)

    @pytest.mark.parametrize("algorithm", ALL_ALGORITHMS)
    def test_same_person_overlap(self, algorithm, settings, same_person):
        tasks, domains = same_person
        result = create_solver(algorithm, settings, seed=3).solve(tasks, domains, 2)
        assert len(result.assignment) == 1
        assert len(result.unscheduled) == 1
        assert_valid(result, tasks, domains, 2)

    @pytest.mark.parametrize("algorithm", ALL_ALGORITHMS)
    def test_single_room_keeps_higher_priority(self, algorithm, settings, one_slot_two_people):
        tasks, domains = one_slot_two_people
        low, high = tasks
        result = create_solver(algorithm, settings, seed=5).solve(tasks, domains, 1)
        assert result.assignment == {high.id: Placement(Slot(DAY, 540), 1)}
        assert result.unscheduled == [low.id]

    @pytest.mark.parametrize("algorithm", ALL_ALGORITHMS)
    def test_empty_domain_unscheduled(self, algorithm, settings):
        placeable = make_task("teacher_1", 0)
        impossible = make_task("teacher_2", 1)
        domains = {placeable.id: starts(540), impossible.id: []}
        result = create_solver(algorithm, settings, seed=1).solve([placeable, impossible], domains, 1)
        assert list(result.assignment) == [placeable.id]
        assert result.unscheduled == [impossible.id]

    @pytest.mark.parametrize("algorithm", ALL_ALGORITHMS)
    def test_no_tasks(self, algorithm, settings):
        result = create_solver(algorithm, settings, seed=1).solve([], {}, 1)
        assert result.assignment == {}
        assert result.unscheduled == []
        assert result.is_complete


class TestCreateSolver:
    """Tests for the strategy registry."""

    def test_every_algorithm_registered(self):
        assert set(SOLVERS) == set(Algorithm)

    @pytest.mark.parametrize("name,cls", [
        ("greedy", GreedySolver),
        ("csp_backtrack", BacktrackingSolver),
        ("min_conflict", MinConflictSolver),
        ("simulated_annealing", SimulatedAnnealingSolver),
        ("cp_sat", CpSatSolver),
    ])
    def test_by_name(self, name, cls):
        solver = create_solver(name)
        assert isinstance(solver, cls)
        assert solver.algorithm == Algorithm(name)

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError):
            create_solver("tabu_search")

    def test_default_settings(self):
        assert create_solver(Algorithm.GREEDY).settings == EngineSettings()


class TestHelpers:
    """Tests for ordering and time budgets."""

    def test_mrv_order(self):
        wide = make_task("teacher_1", 0, priority=1)
        narrow = make_task("teacher_2", 1, priority=1)
        important = make_task("teacher_3", 2, priority=3)
        domains = {wide.id: starts(540, 555), narrow.id: starts(540), important.id: starts(540, 555)}
        assert mrv_order([wide, narrow, important], domains) == [narrow, important, wide]

    def test_time_budget(self):
        clock = itertools.count(0, 2).__next__
        budget = TimeBudget(5, clock)
        assert budget.elapsed == 2
        assert not budget.expired()
        assert budget.expired()
        assert budget.remaining == 0.0


# =============================================================================
# Strategy Specifics
# =============================================================================

class TestGreedy:
    """Tests for greedy first-fit."""

    def test_first_slot_and_room(self, settings):
        task = make_task("teacher_1", 0)
        result = GreedySolver(settings).solve([task], {task.id: starts(600, 540)}, 2)
        assert result.assignment[task.id] == Placement(Slot(DAY, 600), 1)

    def test_second_room_used(self, settings):
        a, b = make_task("teacher_1", 0), make_task("teacher_2", 1)
        domains = {a.id: starts(540), b.id: starts(540)}
        result = GreedySolver(settings).solve([a, b], domains, 2)
        assert result.assignment[b.id].room == 2

    def test_most_constrained_first(self, settings):
        flexible = make_task("teacher_1", 0)
        fixed = make_task("teacher_2", 1)
        domains = {flexible.id: starts(540, 555), fixed.id: starts(540)}
        result = GreedySolver(settings).solve([flexible, fixed], domains, 1)
        assert result.is_complete
        assert result.assignment[fixed.id].slot == Slot(DAY, 540)
        assert result.assignment[flexible.id].slot == Slot(DAY, 555)

    def test_never_backtracks(self, settings, greedy_trap):
        tasks, domains = greedy_trap
        result = GreedySolver(settings).solve(tasks, domains, 1)
        assert result.unscheduled == [tasks[1].id]
        assert result.stats.backtracks == 0

    def test_deterministic(self, settings, busy_day):
        tasks, domains = busy_day
        first = GreedySolver(settings).solve(tasks, domains, 1)
        second = GreedySolver(settings).solve(tasks, domains, 1)
        assert first.assignment == second.assignment
        assert first.unscheduled == second.unscheduled
        assert first.stats == second.stats

    def test_unscheduled_in_task_order(self, settings):
        tasks = [make_task(f"staff_{i}", i) for i in range(1, 4)]
        domains = {t.id: starts(540) for t in tasks}
        result = GreedySolver(settings).solve(tasks, domains, 1)
        assert result.unscheduled == [tasks[1].id, tasks[2].id]


class TestBacktracking:
    """Tests for backtracking with forward checking."""

    def test_escapes_greedy_trap(self, settings, greedy_trap):
        tasks, domains = greedy_trap
        result = BacktrackingSolver(settings).solve(tasks, domains, 1)
        assert result.is_complete
        assert result.assignment[tasks[0].id].slot == Slot(DAY, 555)
        assert result.assignment[tasks[1].id].slot == Slot(DAY, 540)
        assert result.stats.backtracks >= 1
        assert_valid(result, tasks, domains, 1)

    def test_complete_busy_day(self, settings, busy_day):
        tasks, domains = busy_day
        result = BacktrackingSolver(settings).solve(tasks, domains, 1)
        assert result.is_complete
        assert_valid(result, tasks, domains, 1)

    def test_returns_best_partial(self, settings):
        tasks = [make_task(f"staff_{i}", i) for i in range(1, 4)]
        domains = {t.id: starts(540, 555) for t in tasks}
        result = BacktrackingSolver(settings).solve(tasks, domains, 1)
        assert len(result.assignment) == 2
        assert_valid(result, tasks, domains, 1)

    def test_backtrack_limit(self, greedy_trap):
        tasks, domains = greedy_trap
        result = BacktrackingSolver(EngineSettings(max_backtracks=1)).solve(tasks, domains, 1)
        assert result.stats.backtrack_limit_reached
        assert not result.stats.timed_out
        assert_valid(result, tasks, domains, 1)

    def test_time_budget(self, greedy_trap):
        tasks, domains = greedy_trap
        result = BacktrackingSolver(EngineSettings(time_budget=0)).solve(tasks, domains, 1)
        assert result.stats.timed_out
        assert result.assignment == {}

    def test_budget_runs_out_mid_search(self, busy_day):
        tasks, domains = busy_day
        # Each clock read advances one second; the third check expires
        clock = itertools.count().__next__
        solver = BacktrackingSolver(EngineSettings(time_budget=3), clock=clock)
        result = solver.solve(tasks, domains, 1)
        assert result.stats.timed_out
        assert not result.stats.backtrack_limit_reached
        assert len(result.assignment) == 2
        assert_valid(result, tasks, domains, 1)

    def test_unplaceable_task_does_not_block_others(self, settings, same_person):
        pinned, domains = same_person
        free = [make_task(f"staff_{i}", i + 1) for i in range(1, 11)]
        day = generate_slots(DAY, DAY)
        domains = {**domains, **{t.id: list(day) for t in free}}
        tasks = pinned + free
        result = BacktrackingSolver(settings).solve(tasks, domains, 1)
        assert len(result.assignment) == 11
        assert result.unscheduled == [pinned[0].id]
        assert not result.stats.timed_out
        assert not result.stats.backtrack_limit_reached
        assert_valid(result, tasks, domains, 1)

    def test_stops_once_no_improvement_possible(self, settings):
        tasks = [make_task(f"staff_{i}", i) for i in range(1, 6)]
        domains = {t.id: starts(540) for t in tasks}
        result = BacktrackingSolver(settings).solve(tasks, domains, 1)
        assert len(result.assignment) == 1
        assert result.stats.backtracks < 10
        assert not result.stats.backtrack_limit_reached

    def test_deterministic(self, settings, busy_day):
        tasks, domains = busy_day
        first = BacktrackingSolver(settings).solve(tasks, domains, 2)
        second = BacktrackingSolver(settings).solve(tasks, domains, 2)
        assert first.assignment == second.assignment


class TestMinConflict:
    """Tests for min-conflicts local search."""

    def test_resolves_all_conflicts(self, settings, busy_day):
        tasks, domains = busy_day
        result = MinConflictSolver(settings, seed=11).solve(tasks, domains, 1)
        assert result.stats.final_conflicts == 0
        assert result.is_complete
        assert result.conflicts == []

    def test_best_history_non_increasing(self, settings, busy_day):
        tasks, domains = busy_day
        stats = MinConflictSolver(settings, seed=2).solve(tasks, domains, 1).stats
        history = stats.best_history
        assert history
        assert all(b <= a for a, b in zip(history, history[1:]))
        assert history[-1] == stats.final_conflicts

    def test_seeded_runs_repeat(self, settings, busy_day):
        tasks, domains = busy_day
        first = MinConflictSolver(settings, seed=42).solve(tasks, domains, 2)
        second = MinConflictSolver(settings, seed=42).solve(tasks, domains, 2)
        assert first.assignment == second.assignment
        assert first.stats.iterations == second.stats.iterations

    def test_unresolvable_conflicts_reported(self, settings, one_slot_two_people):
        tasks, domains = one_slot_two_people
        result = MinConflictSolver(settings, seed=1).solve(tasks, domains, 1)
        assert result.stats.final_conflicts == 1
        assert len(result.conflicts) == 1
        assert result.stats.iterations == settings.min_conflict_iterations

    def test_time_budget(self, one_slot_two_people):
        tasks, domains = one_slot_two_people
        result = MinConflictSolver(EngineSettings(time_budget=0), seed=1).solve(tasks, domains, 1)
        assert result.stats.timed_out
        assert result.stats.iterations == 0


class TestSimulatedAnnealing:
    """Tests for simulated annealing."""

    def test_cost_weights(self):
        weights = CostWeights()
        assert weights.cost(1, 1, 1) == 35
        assert CostWeights(room_conflict=1, person_conflict=2, unscheduled=3).cost(2, 1, 1) == 7

    def test_best_cost_non_increasing(self, settings, busy_day):
        tasks, domains = busy_day
        stats = SimulatedAnnealingSolver(settings, seed=4).solve(tasks, domains, 1).stats
        history = stats.best_history
        assert all(b <= a for a, b in zip(history, history[1:]))
        assert stats.final_cost == history[-1]

    def test_cools_down(self, settings, one_slot_two_people):
        tasks, domains = one_slot_two_people
        stats = SimulatedAnnealingSolver(settings, seed=4).solve(tasks, domains, 1).stats
        assert stats.final_temperature <= settings.min_temperature
        assert stats.iterations < settings.annealing_iterations
        assert stats.final_cost == 10.0

    def test_iteration_cap(self, one_slot_two_people):
        tasks, domains = one_slot_two_people
        settings = EngineSettings(annealing_iterations=5)
        stats = SimulatedAnnealingSolver(settings, seed=4).solve(tasks, domains, 1).stats
        assert stats.iterations == 5

    def test_stops_when_nothing_left_to_improve(self, settings):
        task = make_task("teacher_1", 0)
        stats = SimulatedAnnealingSolver(settings, seed=1).solve([task], {task.id: starts(540)}, 1).stats
        assert stats.iterations == 0
        assert stats.final_cost == 0

    def test_custom_weights(self, settings, one_slot_two_people):
        tasks, domains = one_slot_two_people
        solver = SimulatedAnnealingSolver(settings, seed=4, weights=CostWeights(room_conflict=3))
        assert solver.solve(tasks, domains, 1).stats.final_cost == 3.0

    def test_seeded_runs_repeat(self, settings, busy_day):
        tasks, domains = busy_day
        first = SimulatedAnnealingSolver(settings, seed=9).solve(tasks, domains, 2)
        second = SimulatedAnnealingSolver(settings, seed=9).solve(tasks, domains, 2)
        assert first.assignment == second.assignment


class TestCpSat:
    """Tests for the CP-SAT strategy."""

    def test_optimal(self, settings, greedy_trap):
        tasks, domains = greedy_trap
        result = CpSatSolver(settings).solve(tasks, domains, 1)
        assert result.is_complete
        assert result.stats.status == "OPTIMAL"
        assert not result.stats.timed_out
        assert_valid(result, tasks, domains, 1)

    def test_maximizes_scheduled_tasks(self, settings):
        # The high priority task blocks two others if placed at 09:00
        high = make_task("teacher_1", 0, duration=30, priority=5)
        a = make_task("staff_1", 1, priority=1)
        b = make_task("staff_2", 2, priority=1)
        domains = {high.id: starts(540), a.id: starts(540), b.id: starts(555)}
        result = CpSatSolver(settings).solve([high, a, b], domains, 1)
        assert set(result.assignment) == {a.id, b.id}

    def test_empty_model(self, settings):
        task = make_task("teacher_1", 0)
        result = CpSatSolver(settings).solve([task], {task.id: []}, 1)
        assert result.unscheduled == [task.id]
        assert result.stats.status == "OPTIMAL"
