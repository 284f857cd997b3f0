from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple

import numpy as np

from whynotyet.dominance import Question
from whynotyet.engines.session import LinearExpr, linear_sum
from whynotyet.errors import ConfigurationError
from whynotyet.geometry import Box, FlexibleConstraint, check_shape, used_attributes
from whynotyet.solver.satisfiability import add_cardinality


@dataclass
class BoxModel:
    shape: str
    lowers: List[Any] = field(default_factory=list)
    uppers: List[Any] = field(default_factory=list)

    @property
    def num_used(self) -> int:
        return len(self.lowers)

    def widths(self) -> List[LinearExpr]:
        return [LinearExpr().add(1.0, hi).add(-1.0, lo) for lo, hi in zip(self.lowers, self.uppers)]

    def perimeter(self) -> LinearExpr:
        expr = LinearExpr()
        for lo, hi in zip(self.lowers, self.uppers):
            expr.add(1.0, hi).add(-1.0, lo)
        return expr

    def read(self, session, measure_kind: str) -> Box:
        bounds = [(session.value(lo), session.value(hi)) for lo, hi in zip(self.lowers, self.uppers)]
        return Box.from_bounds(bounds, measure_kind)


def shaped_rows(question: Question, shape: str) -> Tuple[np.ndarray, np.ndarray]:
    """Coefficient rows over the used attributes and their constant terms.

    The triangle fixes the last weight to ``1 - sum(others)``, which turns
    ``c . w`` into ``sum((c_i - c_n) w_i) + c_n``.
    """
    rows = np.asarray(question.inequalities, dtype=float)
    if rows.size == 0:
        n = used_attributes(shape, question.num_attributes)
        return np.zeros((0, n)), np.zeros(0)
    if shape == "triangle":
        last = rows[:, -1]
        return rows[:, :-1] - last[:, None], last.copy()
    return rows, np.zeros(rows.shape[0])


def worst_vertex_expr(row: np.ndarray, constant: float, lowers: Sequence[Any], uppers: Sequence[Any]) -> LinearExpr:
    expr = LinearExpr(constant=float(constant))
    for coef, lo, hi in zip(row, lowers, uppers):
        expr.add(coef, lo if coef >= 0 else hi)
    return expr


def apply_constraints(session, model: BoxModel, constraints: Sequence[FlexibleConstraint]) -> None:
    for c in constraints:
        if c.attribute >= model.num_used:
            raise ConfigurationError(
                f"constraint on attribute {c.attribute} but the {model.shape} box has {model.num_used}"
            )
        lo = model.lowers[c.attribute]
        hi = model.uppers[c.attribute]
        if c.kind == "min":
            session.add_constraint(LinearExpr().add(1.0, lo), ">=", c.value)
        elif c.kind == "max":
            session.add_constraint(LinearExpr().add(1.0, hi), "<=", c.value)
        else:
            session.add_constraint(LinearExpr().add(1.0, hi).add(-1.0, lo), ">=", c.value)


def encode_box(
    session,
    questions: Sequence[Question],
    ks: Sequence[int],
    shape: str,
    constraints: Sequence[FlexibleConstraint] = (),
) -> BoxModel:
    check_shape(shape)
    if shape == "cube_forall" and not getattr(session, "supports_quantifiers", False):
        raise ConfigurationError("the cube_forall encoding needs a quantifier-capable engine")

    n = used_attributes(shape, questions[0].num_attributes)
    model = BoxModel(shape=shape)
    for i in range(n):
        model.lowers.append(session.add_variable(f"x{i}lower", 0.0, 1.0))
        model.uppers.append(session.add_variable(f"x{i}upper", 0.0, 1.0))
        session.add_constraint(LinearExpr().add(1.0, model.uppers[i]).add(-1.0, model.lowers[i]), ">=", 0.0)
    if shape in ("triangle", "pyramid"):
        session.add_constraint(linear_sum(model.uppers), "<=", 1.0)

    for qi, (q, k) in enumerate(zip(questions, ks)):
        rows, constants = shaped_rows(q, shape)
        if shape == "cube_forall":
            session.add_forall_cardinality(
                model.lowers,
                model.uppers,
                rows.tolist(),
                q.multiplicities.tolist(),
                q.num_competitors - k,
            )
            continue
        exprs = [
            worst_vertex_expr(row, const, model.lowers, model.uppers)
            for row, const in zip(rows, constants)
        ]
        add_cardinality(session, q, k, exprs, f"q{qi}")

    apply_constraints(session, model, constraints)
    return model


def box_is_robust(
    questions: Sequence[Question],
    ranks: Sequence[int],
    box: Box,
    shape: str,
    tol: float = 1e-7,
) -> bool:
    """Numeric check that every weight vector in ``box`` keeps each expected
    tuple within its requested rank, using the worst vertex per inequality."""
    check_shape(shape)
    if not box.bounds:
        return False
    lows = np.array([lo for lo, _ in box.bounds])
    highs = np.array([hi for _, hi in box.bounds])
    if np.any(lows < -tol) or np.any(highs < lows - tol) or np.any(highs > 1.0 + tol):
        return False
    if shape in ("triangle", "pyramid") and highs.sum() > 1.0 + tol:
        return False
    for q, rank in zip(questions, ranks):
        k = q.threshold(rank)
        if k < 0:
            return False
        rows, constants = shaped_rows(q, shape)
        if rows.shape[1] != len(box.bounds):
            raise ConfigurationError(
                f"box has {len(box.bounds)} intervals, {shape} needs {rows.shape[1]}"
            )
        if rows.shape[0] == 0:
            continue
        corners = np.where(rows >= 0, lows[None, :], highs[None, :])
        worst = (rows * corners).sum(axis=1) + constants
        wins = int(q.multiplicities[worst >= -tol].sum())
        if wins < q.num_competitors - k:
            return False
    return True
