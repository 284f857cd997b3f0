from __future__ import annotations

from typing import Sequence, Tuple

import pytest

from whynotyet.io import DataTuple, Relation

ENGINES = ["milp", "smt"]


def make_relation(rows: Sequence[Tuple[str, Sequence[float]]], name: str = "test") -> Relation:
    return Relation(name=name, tuples=[DataTuple(tid, tuple(float(v) for v in values)) for tid, values in rows])


@pytest.fixture(params=ENGINES)
def engine(request) -> str:
    return request.param


@pytest.fixture
def scenario_a() -> Relation:
    """Two dominators, one competitor and one dominatee around ``e``."""
    return make_relation(
        [
            ("t1", (0.9, 0.9)),
            ("t2", (0.8, 0.7)),
            ("t3", (0.2, 0.95)),
            ("e", (0.6, 0.5)),
            ("t5", (0.1, 0.1)),
        ]
    )


@pytest.fixture
def single_competitor() -> Relation:
    """Box supremum is a perimeter of exactly 1 on the cube at rank 1."""
    return make_relation(
        [
            ("e", (0.6, 0.2)),
            ("c", (0.2, 0.6)),
            ("d", (0.1, 0.1)),
        ]
    )


@pytest.fixture
def small_mixed() -> Relation:
    return make_relation(
        [
            ("a", (0.90, 0.10)),
            ("b", (0.10, 0.90)),
            ("c", (0.70, 0.40)),
            ("d", (0.40, 0.70)),
            ("e", (0.56, 0.53)),
            ("f", (0.30, 0.30)),
        ]
    )


@pytest.fixture
def scenario_b() -> Relation:
    """``e`` dominates three tuples and is dominated by one."""
    return make_relation(
        [
            ("top", (0.9, 0.8)),
            ("e", (0.5, 0.5)),
            ("low1", (0.1, 0.1)),
            ("low2", (0.2, 0.4)),
            ("low3", (0.4, 0.3)),
            ("side", (0.8, 0.1)),
        ]
    )
