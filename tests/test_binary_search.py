from __future__ import annotations

import pytest

from conftest import make_relation
from whynotyet.dominance import build_questions
from whynotyet.errors import ConfigurationError, SolverInternalFailure
from whynotyet.scoring import tuples_at_positions
from whynotyet.solver import binary_search
from whynotyet.solver.binary_search import optimize_box
from whynotyet.solver.box import box_is_robust
from whynotyet.synthetic import generate_relation

TRIANGLE_SUPREMUM = 1.0 - 0.45 / 0.85


def test_cube_within_gap_of_supremum(single_competitor, engine) -> None:
    questions = build_questions(single_competitor, [single_competitor.by_id("e")])
    box = optimize_box(questions, [1], "cube", engine)
    assert box.valid
    assert 1.0 - 0.01 <= box.measure <= 1.0 + 1e-6
    assert box.measure == pytest.approx(box.perimeter)
    assert box_is_robust(questions, [1], box, "cube", tol=1e-6)


def test_triangle_within_gap_of_supremum(scenario_a, engine) -> None:
    questions = build_questions(scenario_a, [scenario_a.by_id("e")])
    box = optimize_box(questions, [3], "triangle", engine)
    assert len(box.bounds) == 1
    assert TRIANGLE_SUPREMUM - 0.01 <= box.measure <= TRIANGLE_SUPREMUM + 1e-6
    assert box_is_robust(questions, [3], box, "triangle", tol=1e-6)


def test_precise_reaches_supremum(scenario_a, engine) -> None:
    questions = build_questions(scenario_a, [scenario_a.by_id("e")])
    box = optimize_box(questions, [3], "triangle", engine, precise=True)
    assert box.measure == pytest.approx(TRIANGLE_SUPREMUM, abs=1e-4)


def test_cube_forall_matches_cube(single_competitor) -> None:
    questions = build_questions(single_competitor, [single_competitor.by_id("e")])
    box = optimize_box(questions, [1], "cube_forall", "smt")
    assert 1.0 - 0.01 <= box.measure <= 1.0 + 1e-6
    assert box_is_robust(questions, [1], box, "cube_forall", tol=1e-6)


def test_pruned_returns_invalid_without_solver(scenario_a, monkeypatch) -> None:
    def fail(*args, **kwargs):
        raise AssertionError("solver must not be opened")

    monkeypatch.setattr(binary_search, "open_session", fail)
    questions = build_questions(scenario_a, [scenario_a.by_id("e")])
    box = optimize_box(questions, [2], "triangle")
    assert not box.valid
    assert box.measure == -1.0


def test_volume_on_smt() -> None:
    relation = make_relation([("e", (0.5, 0.5)), ("d", (0.1, 0.1))])
    questions = build_questions(relation, [relation.by_id("e")])
    box = optimize_box(questions, [1], "cube", "smt", measure="volume")
    assert box.measure_kind == "volume"
    assert 0.99 <= box.measure <= 1.0 + 1e-9
    assert box.measure == pytest.approx(box.volume)


def test_volume_rejected_on_milp(scenario_a) -> None:
    questions = build_questions(scenario_a, [scenario_a.by_id("e")])
    with pytest.raises(ConfigurationError):
        optimize_box(questions, [3], "cube", "milp", measure="volume")


def test_volume_rejected_with_precise(scenario_a) -> None:
    questions = build_questions(scenario_a, [scenario_a.by_id("e")])
    with pytest.raises(ConfigurationError):
        optimize_box(questions, [3], "cube", "smt", measure="volume", precise=True)


def test_cube_forall_rejected_on_milp(single_competitor) -> None:
    questions = build_questions(single_competitor, [single_competitor.by_id("e")])
    with pytest.raises(ConfigurationError):
        optimize_box(questions, [1], "cube_forall", "milp")


def test_internal_failure_carries_context(scenario_a, monkeypatch) -> None:
    from whynotyet.engines.milp import MilpSession

    def broken(self):
        raise SolverInternalFailure("boom")

    monkeypatch.setattr(MilpSession, "check", broken)
    questions = build_questions(scenario_a, [scenario_a.by_id("e")])
    with pytest.raises(SolverInternalFailure) as info:
        optimize_box(questions, [3], "pyramid", "milp")
    assert info.value.tuple_ids == ["e"]
    assert info.value.shape == "pyramid"


@pytest.mark.parametrize("seed", [0, 11])
def test_synthetic_box_measure_matches_bounds(engine, seed) -> None:
    # the fifth tuple under equal weights keeps two ranks of slack at rank 7
    relation = generate_relation(10, 3, "uniform", seed=seed)
    expected = tuples_at_positions(relation, [5])
    questions = build_questions(relation, expected)
    box = optimize_box(questions, [7], "cube", engine)
    assert box.valid
    assert abs(box.measure - sum(hi - lo for lo, hi in box.bounds)) < 1e-5
    assert box_is_robust(questions, [7], box, "cube", tol=1e-6)


def test_scenario_b_box_pruned(scenario_b, monkeypatch) -> None:
    def fail(*args, **kwargs):
        raise AssertionError("solver must not be opened")

    monkeypatch.setattr(binary_search, "open_session", fail)
    questions = build_questions(scenario_b, [scenario_b.by_id("e")])
    assert not optimize_box(questions, [1], "cube").valid
