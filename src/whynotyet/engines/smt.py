from __future__ import annotations

from fractions import Fraction
from typing import Any, List, Optional, Sequence

import z3

from whynotyet.engines.session import (
    INFEASIBLE,
    OPTIMAL,
    TIMEOUT,
    LinearExpr,
    check_sense,
    register_engine,
)
from whynotyet.errors import SolverInternalFailure


def _compare(lhs, sense: str, rhs):
    if sense == ">=":
        return lhs >= rhs
    if sense == "<=":
        return lhs <= rhs
    return lhs == rhs


def _to_float(value) -> float:
    if z3.is_rational_value(value):
        return float(value.as_fraction())
    if z3.is_algebraic_value(value):
        return float(value.approx(12).as_fraction())
    if z3.is_int_value(value):
        return float(value.as_long())
    raise SolverInternalFailure(f"cannot read numeric value from {value}")


class SmtSession:
    """Quantifier-capable session backed by a private z3 context."""

    supports_nonlinear = True
    supports_quantifiers = True

    def __init__(self, time_limit: Optional[float] = None) -> None:
        self.time_limit = time_limit
        self.ctx = z3.Context()
        self._assertions: List[Any] = []
        self._marks: List[int] = []
        self._objective: Optional[Any] = None
        self._maximize = True
        self._model = None
        self._counter = 0

    def _real(self, value: float):
        frac = Fraction(float(value)).limit_denominator(10**12)
        magnitude = z3.RealVal(f"{abs(frac.numerator)}/{frac.denominator}", self.ctx)
        return -magnitude if frac < 0 else magnitude

    def _term(self, expr: LinearExpr):
        acc = self._real(expr.constant)
        for coef, var in expr.terms:
            acc = acc + self._real(coef) * var
        return acc

    def _fresh(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"

    def add_variable(self, name: str, lower: float = 0.0, upper: float = 1.0):
        var = z3.Real(name, self.ctx)
        self._assertions.append(var >= self._real(lower))
        self._assertions.append(var <= self._real(upper))
        return var

    def add_constraint(self, expr: LinearExpr, sense: str, rhs: float) -> None:
        check_sense(sense)
        self._assertions.append(_compare(self._term(expr), sense, self._real(rhs)))

    def add_indicator(self, expr: LinearExpr, sense: str, rhs: float, name: str):
        check_sense(sense)
        b = z3.Bool(self._fresh(name), self.ctx)
        self._assertions.append(z3.Implies(b, _compare(self._term(expr), sense, self._real(rhs))))
        return b

    def _pseudo_boolean(self, literals: Sequence[Any], weights: Sequence[float], sense: str, rhs: float):
        pairs = [(lit, int(round(w))) for lit, w in zip(literals, weights)]
        bound = int(round(rhs))
        if not pairs:
            return z3.BoolVal(_compare(0, sense, bound), self.ctx)
        if sense == ">=":
            return z3.PbGe(pairs, bound)
        if sense == "<=":
            return z3.PbLe(pairs, bound)
        return z3.PbEq(pairs, bound)

    def add_cardinality(
        self,
        indicators: Sequence[Any],
        weights: Sequence[float],
        sense: str,
        rhs: float,
    ) -> None:
        check_sense(sense)
        self._assertions.append(self._pseudo_boolean(indicators, weights, sense, rhs))

    def add_product(self, exprs: Sequence[LinearExpr], sense: str, rhs: float) -> None:
        check_sense(sense)
        product = self._real(1.0)
        for expr in exprs:
            product = product * self._term(expr)
        self._assertions.append(_compare(product, sense, self._real(rhs)))

    def add_forall_cardinality(
        self,
        lowers: Sequence[Any],
        uppers: Sequence[Any],
        rows: Sequence[Sequence[float]],
        weights: Sequence[float],
        rhs: float,
    ) -> None:
        """For every point of the box [lowers, uppers], the weighted count of
        rows with ``row . y >= 0`` is at least ``rhs``."""
        ys = [z3.Real(self._fresh("y"), self.ctx) for _ in lowers]
        inside = z3.And(
            [z3.And(y >= lo, y <= hi) for y, lo, hi in zip(ys, lowers, uppers)]
        )
        wins = []
        for row in rows:
            expr = LinearExpr()
            for coef, y in zip(row, ys):
                expr.add(coef, y)
            wins.append(self._term(expr) >= self._real(0.0))
        body = self._pseudo_boolean(wins, weights, ">=", rhs)
        self._assertions.append(z3.ForAll(ys, z3.Implies(inside, body)))

    def set_objective(self, expr: LinearExpr, maximize: bool = True) -> None:
        self._objective = self._term(expr)
        self._maximize = maximize

    def push(self) -> None:
        self._marks.append(len(self._assertions))

    def pop(self) -> None:
        mark = self._marks.pop()
        del self._assertions[mark:]

    def _backend(self):
        if self._objective is not None:
            backend = z3.Optimize(ctx=self.ctx)
            if self._maximize:
                backend.maximize(self._objective)
            else:
                backend.minimize(self._objective)
        else:
            backend = z3.Solver(ctx=self.ctx)
        if self.time_limit:
            backend.set("timeout", int(self.time_limit * 1000))
        backend.add(*self._assertions)
        return backend

    def check(self) -> str:
        self._model = None
        try:
            backend = self._backend()
            result = backend.check()
        except z3.Z3Exception as exc:
            raise SolverInternalFailure(f"z3 failed: {exc}") from exc
        if result == z3.sat:
            self._model = backend.model()
            return OPTIMAL
        if result == z3.unsat:
            return INFEASIBLE
        # unknown: time limit, cancellation or an incomplete theory
        return TIMEOUT

    def value(self, var) -> float:
        if self._model is None:
            raise SolverInternalFailure("no model available")
        return _to_float(self._model.eval(var, model_completion=True))

    def close(self) -> None:
        self._assertions = []
        self._marks = []
        self._objective = None
        self._model = None
        self.ctx = None


register_engine("smt", SmtSession)
