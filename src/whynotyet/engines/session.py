"""Solving-engine capability shared by the encoders.

An engine family is a session class registered under a name. Sessions own
their model for the duration of one solve call and are always closed by
``open_session``.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from whynotyet.errors import ConfigurationError

OPTIMAL = "optimal"
INFEASIBLE = "infeasible"
TIMEOUT = "timeout"

SENSES = (">=", "<=", "==")


@dataclass
class LinearExpr:
    terms: List[Tuple[float, Any]] = field(default_factory=list)
    constant: float = 0.0

    def add(self, coef: float, var: Any) -> "LinearExpr":
        if coef != 0.0:
            self.terms.append((float(coef), var))
        return self


def linear_sum(variables, coef: float = 1.0) -> LinearExpr:
    expr = LinearExpr()
    for var in variables:
        expr.add(coef, var)
    return expr


def check_sense(sense: str) -> str:
    if sense not in SENSES:
        raise ConfigurationError(f"unknown constraint sense {sense!r}")
    return sense


_ENGINES: Dict[str, Callable[..., Any]] = {}


def register_engine(name: str, factory: Callable[..., Any]) -> None:
    _ENGINES[name] = factory


def _factory(engine: str) -> Callable[..., Any]:
    if engine not in _ENGINES:
        # registration happens on import of the engine modules
        from whynotyet.engines import milp, smt  # noqa: F401
    try:
        return _ENGINES[engine]
    except KeyError:
        raise ConfigurationError(
            f"unknown engine {engine!r}, expected one of {sorted(_ENGINES)}"
        ) from None


def engine_capabilities(engine: str) -> Dict[str, bool]:
    factory = _factory(engine)
    return {
        "nonlinear": bool(getattr(factory, "supports_nonlinear", False)),
        "quantifiers": bool(getattr(factory, "supports_quantifiers", False)),
    }


@contextmanager
def open_session(engine: str, time_limit: Optional[float] = None) -> Iterator[Any]:
    session = _factory(engine)(time_limit=time_limit)
    try:
        yield session
    finally:
        session.close()
