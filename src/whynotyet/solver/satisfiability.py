from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from whynotyet.dominance import Question, check_ranks, thresholds
from whynotyet.engines.session import OPTIMAL, TIMEOUT, LinearExpr, linear_sum, open_session
from whynotyet.errors import InfeasibleByPreprocessing, SolverInternalFailure, SolverTimeout


@dataclass
class SatisfiabilityResult:
    satisfiable: bool
    status: str
    weights: List[float] = field(default_factory=list)


def add_cardinality(session, question: Question, k: int, exprs: Sequence[LinearExpr], tag: str) -> None:
    """Indicator ``b_i => expr_i >= 0`` per inequality; weighted sum of the
    indicators must cover every competitor except ``k``."""
    indicators = [
        session.add_indicator(expr, ">=", 0.0, f"{tag}_win_{i}") for i, expr in enumerate(exprs)
    ]
    session.add_cardinality(
        indicators,
        question.multiplicities.tolist(),
        ">=",
        question.num_competitors - k,
    )


def encode_satisfiability(session, questions: Sequence[Question], ks: Sequence[int]) -> list:
    n = questions[0].num_attributes
    weights = [session.add_variable(f"w{i}", 0.0, 1.0) for i in range(n)]
    session.add_constraint(linear_sum(weights), "==", 1.0)
    for qi, (q, k) in enumerate(zip(questions, ks)):
        exprs = []
        for row in q.inequalities:
            expr = LinearExpr()
            for coef, w in zip(row, weights):
                expr.add(coef, w)
            exprs.append(expr)
        add_cardinality(session, q, k, exprs, f"q{qi}")
    return weights


def solve_satisfiability(
    questions: Sequence[Question],
    ranks: Sequence[int],
    engine: str = "milp",
    time_limit: Optional[float] = None,
) -> SatisfiabilityResult:
    check_ranks(questions, ranks)
    try:
        ks = thresholds(questions, ranks)
    except InfeasibleByPreprocessing as exc:
        print(f"satisfiability: pruned ({exc})", flush=True)
        return SatisfiabilityResult(satisfiable=False, status="pruned")

    tuple_ids = [q.expected.tuple_id for q in questions]
    try:
        with open_session(engine, time_limit) as session:
            weights = encode_satisfiability(session, questions, ks)
            status = session.check()
            if status == TIMEOUT:
                raise SolverTimeout(
                    f"satisfiability check for {','.join(tuple_ids)} exceeded {time_limit}s"
                )
            if status != OPTIMAL:
                return SatisfiabilityResult(satisfiable=False, status="unsatisfiable")
            witness = [session.value(w) for w in weights]
    except SolverInternalFailure as exc:
        raise exc.with_context(tuple_ids, "triangle")
    print("satisfiability: witness " + " ".join(f"{w:.5f}" for w in witness), flush=True)
    return SatisfiabilityResult(satisfiable=True, status="satisfiable", weights=witness)
