from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from whynotyet.dominance import Question
from whynotyet.errors import ConfigurationError
from whynotyet.io import DataTuple, Relation


def equal_weights(num_attributes: int) -> np.ndarray:
    return np.full(num_attributes, 1.0 / num_attributes)


def losing_rows(question: Question, weights: Sequence[float], tol: float = 1e-9) -> np.ndarray:
    """Mask of inequalities whose competitor outranks the expected tuple under ``weights``."""
    if question.num_inequalities == 0:
        return np.zeros(0, dtype=bool)
    w = np.asarray(weights, dtype=float)
    return question.inequalities @ w < -tol


def witness_rank(question: Question, weights: Sequence[float], tol: float = 1e-9) -> int:
    """Rank of the expected tuple among its competitors; dominators are not counted."""
    mask = losing_rows(question, weights, tol)
    return 1 + int(question.multiplicities[mask].sum())


def relation_scores(relation: Relation, weights: Optional[Sequence[float]] = None) -> np.ndarray:
    values = np.array([t.values for t in relation.tuples], dtype=float)
    w = equal_weights(relation.num_attributes) if weights is None else np.asarray(weights, dtype=float)
    if w.shape[0] != relation.num_attributes:
        raise ConfigurationError(
            f"{w.shape[0]} weights given for {relation.num_attributes} attributes"
        )
    return values @ w


def ranking_dataframe(relation: Relation, weights: Optional[Sequence[float]] = None) -> pd.DataFrame:
    scores = relation_scores(relation, weights)
    df = pd.DataFrame(
        {"tuple_id": [t.tuple_id for t in relation.tuples], "score": scores}
    )
    df["rank"] = df["score"].rank(method="min", ascending=False).astype(int)
    return df.sort_values(["rank", "tuple_id"], kind="stable").reset_index(drop=True)


def tuples_at_positions(
    relation: Relation,
    positions: Sequence[int],
    weights: Optional[Sequence[float]] = None,
) -> List[DataTuple]:
    """Tuples at 1-based positions of the ordering under ``weights`` (equal weights by default)."""
    df = ranking_dataframe(relation, weights)
    picked: List[DataTuple] = []
    for pos in positions:
        if not 1 <= int(pos) <= len(df):
            raise ConfigurationError(f"position {pos} outside 1..{len(df)}")
        picked.append(relation.by_id(df.iloc[int(pos) - 1]["tuple_id"]))
    return picked
