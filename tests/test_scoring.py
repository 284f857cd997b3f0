from __future__ import annotations

import pytest

from whynotyet.dominance import build_question
from whynotyet.errors import ConfigurationError
from whynotyet.scoring import ranking_dataframe, tuples_at_positions, witness_rank


def test_equal_weight_ordering(small_mixed) -> None:
    df = ranking_dataframe(small_mixed)
    assert df.iloc[0]["tuple_id"] == "c"
    assert df.iloc[-1]["tuple_id"] == "f"
    # c and d tie at 0.55, a and b at 0.5
    assert df["rank"].tolist() == [1, 1, 3, 4, 4, 6]
    assert df["tuple_id"].tolist() == ["c", "d", "e", "a", "b", "f"]


def test_tuples_at_positions(small_mixed) -> None:
    picked = tuples_at_positions(small_mixed, [1, 6])
    assert [t.tuple_id for t in picked] == ["c", "f"]
    with pytest.raises(ConfigurationError):
        tuples_at_positions(small_mixed, [7])


def test_witness_rank_counts_losses(scenario_a) -> None:
    q = build_question(scenario_a, scenario_a.by_id("e"))
    assert witness_rank(q, [1.0, 0.0]) == 1
    assert witness_rank(q, [0.0, 1.0]) == 2
    # a tie is not a loss
    assert witness_rank(q, [0.45 / 0.85, 0.4 / 0.85], tol=1e-9) == 1


def test_custom_weights(small_mixed) -> None:
    df = ranking_dataframe(small_mixed, [1.0, 0.0])
    assert df.iloc[0]["tuple_id"] == "a"
    with pytest.raises(ConfigurationError):
        ranking_dataframe(small_mixed, [1.0])
