from __future__ import annotations

import json
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import asdict, fields
from pathlib import Path
from typing import Dict, List, Tuple

import yaml

from whynotyet.errors import ConfigurationError, SolverTimeout
from whynotyet.geometry import FlexibleConstraint
from whynotyet.io import (
    DataTuple,
    Relation,
    load_relation_csv,
    results_dataframe,
    write_relation_csv,
    write_results_csv,
)
from whynotyet.query import QueryConfig, QueryResult, WhyNotYetQuery
from whynotyet.scoring import tuples_at_positions
from whynotyet.synthetic import generate_relation

_QUERY_KEYS = {f.name for f in fields(QueryConfig)}


def _run_query(args: Tuple[Relation, List[DataTuple], List[int], dict, List[dict]]) -> QueryResult:
    relation, expected, ranks, config_dict, constraint_dicts = args
    config = QueryConfig(**config_dict)
    query = WhyNotYetQuery(relation, expected, ranks, config)
    query.add_constraints([FlexibleConstraint(**c) for c in constraint_dicts])
    try:
        return query.run()
    except SolverTimeout as exc:
        print(f"query timeout: {exc}", flush=True)
        return QueryResult(
            problem=config.problem,
            engine=config.engine,
            shape=config.shape,
            tuple_ids=query.tuple_ids,
            ranks=list(query.ranks),
            status="timeout",
        )


def _load_relation(relation_cfg: dict, seed: int) -> Relation:
    if "path" in relation_cfg:
        relation = load_relation_csv(Path(relation_cfg["path"]), relation_cfg.get("name"))
    elif "synthetic" in relation_cfg:
        synth = relation_cfg["synthetic"]
        relation = generate_relation(
            num_tuples=int(synth.get("num_tuples", 100)),
            num_attributes=int(synth.get("num_attributes", 3)),
            distribution=str(synth.get("distribution", "uniform")),
            seed=int(synth.get("seed", seed)),
        )
    else:
        raise ConfigurationError("relation needs either a path or a synthetic block")
    if relation_cfg.get("num_attributes"):
        relation = relation.project(int(relation_cfg["num_attributes"]))
    if relation_cfg.get("num_tuples"):
        relation = relation.head(int(relation_cfg["num_tuples"]))
    return relation


def _expected_tuples(relation: Relation, expected_cfg: dict) -> List[DataTuple]:
    if "ids" in expected_cfg:
        return [relation.by_id(str(i)) for i in expected_cfg["ids"]]
    if "default_ranks" in expected_cfg:
        return tuples_at_positions(relation, [int(p) for p in expected_cfg["default_ranks"]])
    raise ConfigurationError("expected needs either ids or default_ranks")


def _query_config(query_cfg: dict) -> dict:
    unknown = set(query_cfg) - _QUERY_KEYS
    if unknown:
        raise ConfigurationError(f"unknown query keys {sorted(unknown)}")
    return asdict(QueryConfig(**query_cfg))


def _build_tasks(config: dict, relation: Relation, seed: int) -> List[tuple]:
    expected = _expected_tuples(relation, config.get("expected", {}))
    ranks = [int(r) for r in config.get("ranks", [])]
    query_cfg = dict(config.get("query", {}))
    query_cfg.setdefault("seed", seed)
    base = _query_config(query_cfg)
    problems = list(config.get("problems", [base["problem"]]))
    shapes = list(config.get("shapes", [base["shape"]]))
    constraints = [dict(c) for c in config.get("constraints", [])]

    tasks = []
    for problem in problems:
        for shape in shapes if problem == "box" else [base["shape"]]:
            query_cfg = dict(base, problem=problem, shape=shape)
            # validate before handing off to workers
            QueryConfig(**query_cfg)
            tasks.append((relation, expected, ranks, query_cfg, constraints))
    return tasks


def _summary(results: List[QueryResult]) -> Dict[str, object]:
    by_status: Dict[str, int] = {}
    for r in results:
        by_status[r.status] = by_status.get(r.status, 0) + 1
    return {
        "queries": len(results),
        "by_status": by_status,
        "total_elapsed_ms": sum(r.elapsed_ms for r in results),
    }


def run_experiment(config: dict, output_dir: Path) -> List[QueryResult]:
    output_dir.mkdir(parents=True, exist_ok=True)

    start_time = time.perf_counter()
    seed = int(config.get("seed", 1337))
    max_workers = int(config.get("max_workers", 1))

    relation = _load_relation(dict(config.get("relation", {})), seed)
    print(
        f"run_experiment start: seed={seed} relation={relation.name} "
        f"tuples={len(relation)} attributes={relation.num_attributes} max_workers={max_workers}",
        flush=True,
    )
    if config.get("write_relation", False):
        write_relation_csv(relation, output_dir / "relation.csv")

    tasks = _build_tasks(config, relation, seed)
    print(f"queries: {len(tasks)}", flush=True)

    results: List[QueryResult] = []
    if max_workers > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            for result in executor.map(_run_query, tasks):
                results.append(result)
    else:
        for task in tasks:
            results.append(_run_query(task))

    write_results_csv(results_dataframe(results), output_dir / "results.csv")
    summary = _summary(results)
    summary["config"] = config
    (output_dir / "summary.json").write_text(json.dumps(summary, indent=2))

    total_time = time.perf_counter() - start_time
    print(f"run_experiment done: queries={len(results)} time_s={total_time:.1f}", flush=True)
    return results


def load_config(path: Path) -> dict:
    with path.open("r") as f:
        return yaml.safe_load(f)
