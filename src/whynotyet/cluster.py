from __future__ import annotations

import math
import warnings
from typing import List, Sequence

import numpy as np
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning

from whynotyet.dominance import Question
from whynotyet.errors import ConfigurationError


def _num_clusters(num_inequalities: int, ratio: float) -> int:
    return max(1, int(math.floor(num_inequalities * ratio)))


def representatives(inequalities: np.ndarray, labels: np.ndarray) -> tuple:
    """Coordinate-wise minimum per non-empty cluster, with the cluster sizes."""
    rows: List[np.ndarray] = []
    sizes: List[int] = []
    for label in np.unique(labels):
        members = inequalities[labels == label]
        rows.append(members.min(axis=0))
        sizes.append(int(members.shape[0]))
    return np.vstack(rows), np.asarray(sizes, dtype=int)


def cluster_question(question: Question, ratio: float, seed: int = 0) -> Question:
    if not 0.0 < ratio <= 1.0:
        raise ConfigurationError(f"cluster ratio must lie in (0, 1], got {ratio}")
    if question.clustered:
        raise ConfigurationError(f"question {question.expected.tuple_id} is already clustered")
    m = question.num_inequalities
    if m == 0:
        return question
    if ratio >= 1.0:
        question.replace_inequalities(question.inequalities.copy(), question.multiplicities.copy())
        return question

    c = _num_clusters(m, ratio)
    kmeans = KMeans(n_clusters=c, init="random", n_init=1, max_iter=1, random_state=seed)
    with warnings.catch_warnings():
        # one iteration never converges and duplicate rows leave clusters empty
        warnings.simplefilter("ignore", ConvergenceWarning)
        labels = kmeans.fit_predict(question.inequalities)
    rows, sizes = representatives(question.inequalities, labels)
    question.replace_inequalities(rows, sizes)
    print(
        f"cluster {question.expected.tuple_id}: inequalities={m} clusters={rows.shape[0]} ratio={ratio}",
        flush=True,
    )
    return question


def cluster_questions(questions: Sequence[Question], ratio: float, seed: int = 0) -> List[Question]:
    return [cluster_question(q, ratio, seed + i) for i, q in enumerate(questions)]
