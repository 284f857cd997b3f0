from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from whynotyet.cluster import cluster_questions
from whynotyet.dominance import Question, build_questions, check_ranks
from whynotyet.errors import ConfigurationError, SolverInternalFailure
from whynotyet.geometry import Box, FlexibleConstraint, check_measure, check_shape
from whynotyet.io import DataTuple, Relation
from whynotyet.solver.arrangement import best_rank_arrangement, best_rank_bisect
from whynotyet.solver.binary_search import optimize_box
from whynotyet.solver.satisfiability import solve_satisfiability

PROBLEMS = ("satisfiability", "box", "best")
BEST_METHODS = ("arrangement", "bisect")


@dataclass
class QueryConfig:
    engine: str = "milp"
    problem: str = "satisfiability"
    shape: str = "triangle"
    measure: str = "perimeter"
    cluster_ratio: float = 0.0
    precise: bool = False
    time_limit: Optional[float] = 60.0
    seed: int = 0
    best_method: str = "arrangement"
    log_every_nodes: int = 0
    max_nodes: int = 0

    def __post_init__(self) -> None:
        if self.problem not in PROBLEMS:
            raise ConfigurationError(f"unknown problem {self.problem!r}, expected one of {PROBLEMS}")
        if self.best_method not in BEST_METHODS:
            raise ConfigurationError(
                f"unknown best_method {self.best_method!r}, expected one of {BEST_METHODS}"
            )
        check_shape(self.shape)
        check_measure(self.measure)
        if not 0.0 <= self.cluster_ratio <= 1.0:
            raise ConfigurationError(f"cluster_ratio must lie in [0, 1], got {self.cluster_ratio}")


@dataclass
class QueryResult:
    problem: str
    engine: str
    shape: str
    tuple_ids: List[str] = field(default_factory=list)
    ranks: List[int] = field(default_factory=list)
    satisfiable: Optional[bool] = None
    status: str = ""
    weights: List[float] = field(default_factory=list)
    box_bounds: List[Tuple[float, float]] = field(default_factory=list)
    box_measure: float = -1.0
    measure_kind: str = "perimeter"
    box_valid: bool = False
    best_rank: int = -1
    absolute_rank: int = -1
    nodes_explored: int = 0
    clustered: bool = False
    elapsed_ms: float = 0.0

    @property
    def box(self) -> Box:
        return Box(bounds=list(self.box_bounds), measure=self.box_measure, measure_kind=self.measure_kind)


class WhyNotYetQuery:
    """One why-not-yet question over a relation, answered by ``run``."""

    def __init__(
        self,
        relation: Relation,
        expected: Sequence[DataTuple],
        ranks: Sequence[int] = (),
        config: Optional[QueryConfig] = None,
    ) -> None:
        self.relation = relation
        self.config = config or QueryConfig()
        self.questions: List[Question] = build_questions(relation, list(expected))
        if self.config.problem == "best":
            if len(self.questions) != 1:
                raise ConfigurationError("the best-rank problem takes exactly one expected tuple")
            self.ranks: List[int] = [int(r) for r in ranks]
        else:
            self.ranks = check_ranks(self.questions, ranks)
        self.constraints: List[FlexibleConstraint] = []

    @property
    def tuple_ids(self) -> List[str]:
        return [q.expected.tuple_id for q in self.questions]

    def add_constraint(self, constraint: FlexibleConstraint) -> None:
        self.constraints.append(constraint)

    def add_constraints(self, constraints: Sequence[FlexibleConstraint]) -> None:
        for c in constraints:
            self.add_constraint(c)

    def _cluster(self) -> bool:
        ratio = self.config.cluster_ratio
        if ratio <= 0 or any(q.clustered for q in self.questions):
            return any(q.clustered for q in self.questions)
        start = time.perf_counter()
        cluster_questions(self.questions, ratio, self.config.seed)
        print(f"clustering time_ms={(time.perf_counter() - start) * 1000:.1f}", flush=True)
        return True

    def run(self) -> QueryResult:
        cfg = self.config
        result = QueryResult(
            problem=cfg.problem,
            engine=cfg.engine,
            shape=cfg.shape,
            measure_kind=cfg.measure,
            tuple_ids=self.tuple_ids,
            ranks=list(self.ranks),
        )
        print(
            f"query start: problem={cfg.problem} engine={cfg.engine} shape={cfg.shape} "
            f"tuples={','.join(self.tuple_ids)} ranks={self.ranks}",
            flush=True,
        )
        start = time.perf_counter()
        try:
            result.clustered = self._cluster()
            if cfg.problem == "best":
                self._run_best(result)
            else:
                sat = None
                if result.clustered or cfg.problem == "satisfiability":
                    sat = solve_satisfiability(self.questions, self.ranks, cfg.engine, cfg.time_limit)
                    result.satisfiable = sat.satisfiable
                    result.status = sat.status
                    result.weights = sat.weights
                if cfg.problem == "box":
                    self._run_box(result, sat)
        except SolverInternalFailure as exc:
            raise exc.with_context(self.tuple_ids, cfg.shape)
        result.elapsed_ms = (time.perf_counter() - start) * 1000
        print(f"query done: status={result.status} time_ms={result.elapsed_ms:.1f}", flush=True)
        return result

    def _run_box(self, result: QueryResult, sat) -> None:
        cfg = self.config
        if sat is not None and not sat.satisfiable:
            box = Box.invalid(cfg.measure)
        else:
            box = optimize_box(
                self.questions,
                self.ranks,
                cfg.shape,
                engine=cfg.engine,
                measure=cfg.measure,
                precise=cfg.precise,
                constraints=self.constraints,
                time_limit=cfg.time_limit,
            )
        result.box_bounds = list(box.bounds)
        result.box_measure = box.measure
        result.box_valid = box.valid
        result.status = "box" if box.valid else "no_box"

    def _run_best(self, result: QueryResult) -> None:
        cfg = self.config
        question = self.questions[0]
        if cfg.best_method == "bisect":
            best = best_rank_bisect(question, cfg.engine, cfg.time_limit)
        else:
            best = best_rank_arrangement(
                question,
                cfg.engine,
                time_limit=cfg.time_limit,
                log_every_nodes=cfg.log_every_nodes,
                max_nodes=cfg.max_nodes,
            )
        result.best_rank = best.rank
        result.absolute_rank = best.absolute_rank
        result.nodes_explored = best.nodes_explored
        result.weights = list(best.weights)
        # representatives of a clustered question only bound the best rank from above
        exact = best.exhausted and not result.clustered
        result.status = "best" if exact else "best_upper_bound"
