from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest
import yaml

from whynotyet.errors import ConfigurationError
from whynotyet.io import write_relation_csv
from whynotyet.pipeline import load_config, run_experiment


def _config(**overrides) -> dict:
    config = {
        "seed": 3,
        "relation": {"synthetic": {"num_tuples": 12, "num_attributes": 2, "distribution": "uniform"}},
        "expected": {"default_ranks": [3]},
        "ranks": [3],
        "query": {"engine": "milp", "time_limit": 30},
        "problems": ["satisfiability", "box", "best"],
        "shapes": ["triangle", "cube"],
        "constraints": [],
    }
    config.update(overrides)
    return config


def test_run_experiment_writes_artifacts(tmp_path: Path) -> None:
    results = run_experiment(_config(), tmp_path)
    assert len(results) == 4
    df = pd.read_csv(tmp_path / "results.csv")
    assert df["problem"].tolist() == ["satisfiability", "box", "box", "best"]
    assert df["shape"].tolist()[1:3] == ["triangle", "cube"]
    summary = json.loads((tmp_path / "summary.json").read_text())
    assert summary["queries"] == 4
    assert summary["config"]["seed"] == 3
    # equal weights already place the tuple third
    assert results[0].satisfiable
    assert results[3].absolute_rank <= 3


def test_relation_from_csv_and_ids(tmp_path: Path, scenario_a) -> None:
    write_relation_csv(scenario_a, tmp_path / "data.csv")
    config = _config(
        relation={"path": str(tmp_path / "data.csv")},
        expected={"ids": ["e"]},
        problems=["satisfiability"],
    )
    results = run_experiment(config, tmp_path / "out")
    assert results[0].tuple_ids == ["e"]
    assert results[0].satisfiable


def test_load_config_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(_config()))
    assert load_config(path) == _config()


def test_unknown_query_key(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        run_experiment(_config(query={"solver": "gurobi"}), tmp_path)


def test_parallel_matches_sequential(tmp_path: Path) -> None:
    config = _config(problems=["satisfiability", "box"], shapes=["pyramid"])
    sequential = run_experiment(config, tmp_path / "seq")
    parallel = run_experiment(dict(config, max_workers=2), tmp_path / "par")
    assert [r.satisfiable for r in sequential] == [r.satisfiable for r in parallel]
    assert [r.box_valid for r in sequential] == [r.box_valid for r in parallel]
