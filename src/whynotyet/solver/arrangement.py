from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from whynotyet.dominance import Question
from whynotyet.engines.session import OPTIMAL, LinearExpr, linear_sum, open_session
from whynotyet.errors import SolverInternalFailure
from whynotyet.scoring import equal_weights, witness_rank
from whynotyet.solver.satisfiability import solve_satisfiability


@dataclass(frozen=True)
class Link:
    head: int
    tail: Optional["Link"] = None

    def __iter__(self) -> Iterator[int]:
        node: Optional[Link] = self
        while node is not None:
            yield node.head
            node = node.tail


@dataclass(frozen=True)
class ArrangementNode:
    """Partial assignment of competitors to the expected tuple's win or lose side.

    Children extend their parent's chains with one link, so siblings share
    every earlier decision.
    """

    index: int = 0
    win: Optional[Link] = None
    lose: Optional[Link] = None

    def branch(self, win: bool) -> "ArrangementNode":
        if win:
            return ArrangementNode(self.index + 1, Link(self.index, self.win), self.lose)
        return ArrangementNode(self.index + 1, self.win, Link(self.index, self.lose))

    def wins(self) -> List[int]:
        return list(self.win) if self.win is not None else []

    def losses(self) -> List[int]:
        return list(self.lose) if self.lose is not None else []


@dataclass
class BestRankResult:
    rank: int
    absolute_rank: int
    nodes_explored: int = 0
    weights: List[float] = field(default_factory=list)
    exhausted: bool = True


def _row_expr(row, weights) -> LinearExpr:
    expr = LinearExpr()
    for coef, w in zip(row, weights):
        expr.add(coef, w)
    return expr


def _solve_node(question: Question, node: ArrangementNode, engine: str, time_limit: Optional[float]):
    with open_session(engine, time_limit) as session:
        weights = [session.add_variable(f"w{i}", 0.0, 1.0) for i in range(question.num_attributes)]
        session.add_constraint(linear_sum(weights), "==", 1.0)
        for i in node.wins():
            session.add_constraint(_row_expr(question.inequalities[i], weights), ">=", 0.0)
        for i in node.losses():
            session.add_constraint(_row_expr(question.inequalities[i], weights), "<=", 0.0)
        if session.check() != OPTIMAL:
            return None
        return [session.value(w) for w in weights]


def best_rank_arrangement(
    question: Question,
    engine: str = "milp",
    time_limit: Optional[float] = None,
    log_every_nodes: int = 0,
    max_nodes: int = 0,
    tol: float = 1e-7,
) -> BestRankResult:
    """Breadth-first walk over the arrangement of the competitor hyperplanes.

    Every feasible cell yields a witness weight vector whose rank bounds the
    best rank from above. ``max_nodes`` stops the walk early (0 means no
    limit), in which case the result is an upper bound only.
    """
    best = question.num_competitors + 1
    best_weights: List[float] = equal_weights(question.num_attributes).tolist()
    queue = deque([ArrangementNode()])
    explored = 0
    exhausted = True
    try:
        while queue:
            if max_nodes and explored >= max_nodes:
                exhausted = False
                break
            node = queue.popleft()
            explored += 1
            if log_every_nodes and explored % log_every_nodes == 0:
                print(f"arrangement: nodes={explored} queued={len(queue)} best={best}", flush=True)
            witness = _solve_node(question, node, engine, time_limit)
            if witness is None:
                continue
            rank = witness_rank(question, witness, tol)
            if rank < best:
                best = rank
                best_weights = witness
                if best == 1:
                    break
            if node.index < question.num_inequalities:
                queue.append(node.branch(win=True))
                queue.append(node.branch(win=False))
    except SolverInternalFailure as exc:
        raise exc.with_context([question.expected.tuple_id], None)

    print(
        f"arrangement done: tuple={question.expected.tuple_id} rank={best} "
        f"absolute={best + question.num_dominators} nodes={explored}",
        flush=True,
    )
    return BestRankResult(
        rank=best,
        absolute_rank=best + question.num_dominators,
        nodes_explored=explored,
        weights=best_weights,
        exhausted=exhausted,
    )


def best_rank_bisect(
    question: Question,
    engine: str = "milp",
    time_limit: Optional[float] = None,
) -> BestRankResult:
    """Bisect the requested rank with satisfiability checks.

    ``num_dominators`` is never reachable and every rank past all the
    competitors always is, so the loop keeps ``low`` unsatisfiable and
    ``high`` satisfiable.
    """
    low = question.num_dominators
    high = question.num_dominators + question.num_competitors + 1
    weights: List[float] = equal_weights(question.num_attributes).tolist()
    checks = 0
    while high - low > 1:
        mid = (high + low) // 2
        result = solve_satisfiability([question], [mid], engine, time_limit)
        checks += 1
        print(f"bisect: rank={mid} satisfiable={result.satisfiable}", flush=True)
        if result.satisfiable:
            high = mid
            weights = result.weights
        else:
            low = mid
    return BestRankResult(
        rank=high - question.num_dominators,
        absolute_rank=high,
        nodes_explored=checks,
        weights=weights,
    )
