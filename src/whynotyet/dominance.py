from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from whynotyet.errors import ConfigurationError, InfeasibleByPreprocessing
from whynotyet.io import DataTuple, Relation


@dataclass
class Question:
    expected: DataTuple
    num_dominators: int = 0
    num_dominatees: int = 0
    num_competitors: int = 0
    inequalities: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    multiplicities: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    clustered: bool = False

    @property
    def num_inequalities(self) -> int:
        return int(self.inequalities.shape[0])

    @property
    def num_attributes(self) -> int:
        return self.expected.num_attributes

    @property
    def relation_size(self) -> int:
        return self.num_dominators + self.num_dominatees + self.num_competitors + 1

    def threshold(self, requested_rank: int) -> int:
        return int(requested_rank) - self.num_dominators - 1

    def require_threshold(self, requested_rank: int) -> int:
        k = self.threshold(requested_rank)
        if k < 0:
            raise InfeasibleByPreprocessing(self.expected.tuple_id, requested_rank, self.num_dominators)
        return k

    def replace_inequalities(self, inequalities: np.ndarray, multiplicities: np.ndarray) -> None:
        if int(multiplicities.sum()) != self.num_competitors:
            raise ConfigurationError(
                f"multiplicities sum to {int(multiplicities.sum())}, "
                f"expected {self.num_competitors} competitors"
            )
        self.inequalities = inequalities
        self.multiplicities = multiplicities
        self.clustered = True


def _locate_expected(relation: Relation, expected: DataTuple) -> int:
    fallback = -1
    for idx, t in enumerate(relation.tuples):
        if t == expected:
            if t.tuple_id == expected.tuple_id:
                return idx
            if fallback < 0:
                fallback = idx
    if fallback < 0:
        raise ConfigurationError(f"expected tuple {expected.tuple_id!r} is not in relation {relation.name!r}")
    return fallback


def build_question(relation: Relation, expected: DataTuple) -> Question:
    if expected.num_attributes != relation.num_attributes:
        raise ConfigurationError(
            f"expected tuple {expected.tuple_id!r} has {expected.num_attributes} attributes, "
            f"relation has {relation.num_attributes}"
        )
    skip = _locate_expected(relation, expected)
    question = Question(expected=expected)
    target = np.asarray(expected.values, dtype=float)
    rows: List[np.ndarray] = []
    for idx, t in enumerate(relation.tuples):
        if idx == skip:
            continue
        relation_sign = expected.dominance(t)
        if relation_sign == 1:
            question.num_dominatees += 1
        elif relation_sign == -1:
            question.num_dominators += 1
        else:
            question.num_competitors += 1
            rows.append(target - np.asarray(t.values, dtype=float))
    if rows:
        question.inequalities = np.vstack(rows)
    else:
        question.inequalities = np.zeros((0, relation.num_attributes))
    question.multiplicities = np.ones(len(rows), dtype=int)
    return question


def build_questions(relation: Relation, expected_tuples: Sequence[DataTuple]) -> List[Question]:
    if not expected_tuples:
        raise ConfigurationError("at least one expected tuple is required")
    questions = [build_question(relation, t) for t in expected_tuples]
    for q in questions:
        print(
            f"question {q.expected.tuple_id}: dominators={q.num_dominators} "
            f"dominatees={q.num_dominatees} competitors={q.num_competitors}",
            flush=True,
        )
    return questions


def check_ranks(questions: Sequence[Question], ranks: Sequence[int]) -> List[int]:
    if len(questions) != len(ranks):
        raise ConfigurationError(
            f"{len(ranks)} requested ranks given for {len(questions)} expected tuples"
        )
    widths = {q.num_attributes for q in questions}
    if len(widths) != 1:
        raise ConfigurationError(f"questions mix attribute counts {sorted(widths)}")
    return [int(r) for r in ranks]


def thresholds(questions: Sequence[Question], ranks: Sequence[int]) -> List[int]:
    """Top-k thresholds for every question; raises on the first negative one."""
    ranks = check_ranks(questions, ranks)
    return [q.require_threshold(r) for q, r in zip(questions, ranks)]
