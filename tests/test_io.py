from __future__ import annotations

from pathlib import Path

import pytest

from whynotyet.errors import ConfigurationError
from whynotyet.io import (
    DataTuple,
    Relation,
    load_relation_csv,
    results_dataframe,
    write_relation_csv,
)
from whynotyet.query import QueryResult


def test_from_strings_parses_identifier_and_values() -> None:
    t = DataTuple.from_strings(["17", " 0.5", "0.25 "])
    assert t.tuple_id == "17"
    assert t.values == (0.5, 0.25)
    assert t.num_attributes == 2


def test_from_strings_rejects_non_numeric() -> None:
    with pytest.raises(ConfigurationError):
        DataTuple.from_strings(["x", "0.1", "abc"])


def test_equality_ignores_identifier() -> None:
    assert DataTuple("a", (0.1, 0.2)) == DataTuple("b", (0.1, 0.2))
    assert hash(DataTuple("a", (0.1, 0.2))) == hash(DataTuple("b", (0.1, 0.2)))


def test_relation_validation() -> None:
    with pytest.raises(ConfigurationError):
        Relation("empty", [])
    with pytest.raises(ConfigurationError):
        Relation("ragged", [DataTuple("a", (0.1, 0.2)), DataTuple("b", (0.1,))])


def test_load_named_relation_with_end_marker(tmp_path: Path) -> None:
    path = tmp_path / "stats.csv"
    path.write_text("Relation Data\nID,Attribute1,Attribute2\n1,0.100,0.900\n2,0.500,0.500\nEnd\n")
    relation = load_relation_csv(path)
    assert relation.name == "Relation Data"
    assert len(relation) == 2
    assert relation.by_id("2").values == (0.5, 0.5)


def test_load_plain_csv_uses_stem(tmp_path: Path) -> None:
    path = tmp_path / "players.csv"
    path.write_text("id,x,y,z\np1,1,2,3\np2,4,5,6\n")
    relation = load_relation_csv(path)
    assert relation.name == "players"
    assert relation.num_attributes == 3


def test_write_then_load(tmp_path: Path, scenario_a) -> None:
    path = tmp_path / "out" / "relation.csv"
    write_relation_csv(scenario_a, path)
    lines = path.read_text().splitlines()
    assert lines[0] == "test"
    assert lines[1] == "ID,Attribute1,Attribute2"
    assert lines[-1] == "End"
    loaded = load_relation_csv(path)
    assert [t.tuple_id for t in loaded.tuples] == [t.tuple_id for t in scenario_a.tuples]
    assert loaded.tuples == scenario_a.tuples


def test_project_and_head(small_mixed) -> None:
    projected = small_mixed.project(1)
    assert projected.num_attributes == 1
    assert len(small_mixed.head(2)) == 2
    with pytest.raises(ConfigurationError):
        small_mixed.project(3)


def test_results_dataframe_flattens_lists() -> None:
    record = QueryResult(
        problem="box",
        engine="milp",
        shape="cube",
        tuple_ids=["e"],
        ranks=[3],
        box_bounds=[(0.0, 0.5), (0.25, 1.0)],
    )
    df = results_dataframe([record])
    assert df.loc[0, "tuple_ids"] == "e"
    assert df.loc[0, "box_bounds"] == "0.000000:0.500000;0.250000:1.000000"
