from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import Bounds, LinearConstraint, milp
from scipy.sparse import coo_matrix

from whynotyet.engines.session import (
    INFEASIBLE,
    OPTIMAL,
    TIMEOUT,
    LinearExpr,
    check_sense,
    register_engine,
)
from whynotyet.errors import ConfigurationError, SolverInternalFailure


_Row = Tuple[Dict[int, float], float, float]


class MilpSession:
    """Mixed-integer model solved by HiGHS through ``scipy.optimize.milp``.

    Indicator constraints are compiled to big-M rows; M is derived from the
    bounds of the variables in the implied expression, so every variable that
    appears under an indicator must be bounded.
    """

    supports_nonlinear = False
    supports_quantifiers = False

    def __init__(self, time_limit: Optional[float] = None) -> None:
        self.time_limit = time_limit
        self._names: List[str] = []
        self._lower: List[float] = []
        self._upper: List[float] = []
        self._integrality: List[int] = []
        self._rows: List[_Row] = []
        self._marks: List[int] = []
        self._objective: Dict[int, float] = {}
        self._maximize = False
        self._solution: Optional[np.ndarray] = None

    # model building

    def add_variable(self, name: str, lower: float = 0.0, upper: float = 1.0) -> int:
        self._names.append(name)
        self._lower.append(float(lower))
        self._upper.append(float(upper))
        self._integrality.append(0)
        return len(self._names) - 1

    def _add_binary(self, name: str) -> int:
        idx = self.add_variable(name, 0.0, 1.0)
        self._integrality[idx] = 1
        return idx

    @staticmethod
    def _coefficients(expr: LinearExpr) -> Dict[int, float]:
        coeffs: Dict[int, float] = {}
        for coef, var in expr.terms:
            coeffs[var] = coeffs.get(var, 0.0) + coef
        return coeffs

    def _push_row(self, coeffs: Dict[int, float], sense: str, rhs: float) -> None:
        lo, hi = -np.inf, np.inf
        if sense in (">=", "=="):
            lo = rhs
        if sense in ("<=", "=="):
            hi = rhs
        self._rows.append((coeffs, lo, hi))

    def add_constraint(self, expr: LinearExpr, sense: str, rhs: float) -> None:
        check_sense(sense)
        self._push_row(self._coefficients(expr), sense, float(rhs) - expr.constant)

    def _expr_range(self, coeffs: Dict[int, float]) -> Tuple[float, float]:
        low = high = 0.0
        for var, coef in coeffs.items():
            lo, hi = self._lower[var], self._upper[var]
            if not (np.isfinite(lo) and np.isfinite(hi)):
                raise ConfigurationError(f"indicator over unbounded variable {self._names[var]}")
            if coef >= 0:
                low += coef * lo
                high += coef * hi
            else:
                low += coef * hi
                high += coef * lo
        return low, high

    def add_indicator(self, expr: LinearExpr, sense: str, rhs: float, name: str) -> int:
        check_sense(sense)
        if sense == "==":
            raise ConfigurationError("equality indicators are not supported")
        b = self._add_binary(name)
        coeffs = self._coefficients(expr)
        target = float(rhs) - expr.constant
        low, high = self._expr_range(coeffs)
        if sense == ">=":
            big_m = max(target - low, 0.0)
            # expr - M * b >= target - M
            row = dict(coeffs)
            row[b] = row.get(b, 0.0) - big_m
            self._push_row(row, ">=", target - big_m)
        else:
            big_m = max(high - target, 0.0)
            # expr + M * b <= target + M
            row = dict(coeffs)
            row[b] = row.get(b, 0.0) + big_m
            self._push_row(row, "<=", target + big_m)
        return b

    def add_cardinality(
        self,
        indicators: Sequence[int],
        weights: Sequence[float],
        sense: str,
        rhs: float,
    ) -> None:
        expr = LinearExpr()
        for b, w in zip(indicators, weights):
            expr.add(float(w), b)
        self.add_constraint(expr, sense, rhs)

    def add_product(self, exprs: Sequence[LinearExpr], sense: str, rhs: float) -> None:
        raise ConfigurationError("the milp engine cannot express products of variables")

    def add_forall_cardinality(self, *args, **kwargs) -> None:
        raise ConfigurationError("the milp engine cannot express quantified constraints")

    def set_objective(self, expr: LinearExpr, maximize: bool = True) -> None:
        self._objective = self._coefficients(expr)
        self._maximize = maximize

    def push(self) -> None:
        self._marks.append(len(self._rows))

    def pop(self) -> None:
        mark = self._marks.pop()
        del self._rows[mark:]

    # solving

    def _matrix(self):
        data: List[float] = []
        rows: List[int] = []
        cols: List[int] = []
        for r, (coeffs, _, _) in enumerate(self._rows):
            for var, coef in coeffs.items():
                if coef == 0.0:
                    continue
                rows.append(r)
                cols.append(var)
                data.append(coef)
        shape = (len(self._rows), len(self._names))
        return coo_matrix((data, (rows, cols)), shape=shape).tocsr()

    def check(self) -> str:
        n = len(self._names)
        c = np.zeros(n)
        for var, coef in self._objective.items():
            c[var] = -coef if self._maximize else coef
        constraints = []
        if self._rows:
            lo = np.array([row[1] for row in self._rows])
            hi = np.array([row[2] for row in self._rows])
            constraints.append(LinearConstraint(self._matrix(), lo, hi))
        options = {"disp": False}
        if self.time_limit:
            options["time_limit"] = float(self.time_limit)
        try:
            res = milp(
                c,
                integrality=np.array(self._integrality),
                bounds=Bounds(np.array(self._lower), np.array(self._upper)),
                constraints=constraints or None,
                options=options,
            )
        except (ValueError, TypeError) as exc:
            raise SolverInternalFailure(f"milp rejected the model: {exc}") from exc

        self._solution = None
        if res.status == 0:
            self._solution = np.asarray(res.x, dtype=float)
            return OPTIMAL
        if res.status == 1:
            return TIMEOUT
        if res.status == 2:
            return INFEASIBLE
        raise SolverInternalFailure(f"milp status {res.status}: {res.message}")

    def value(self, var: int) -> float:
        if self._solution is None:
            raise SolverInternalFailure("no solution available")
        return float(self._solution[var])

    def close(self) -> None:
        self._rows = []
        self._marks = []
        self._solution = None


register_engine("milp", MilpSession)
