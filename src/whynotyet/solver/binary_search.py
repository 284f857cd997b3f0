from __future__ import annotations

from typing import Optional, Sequence

from whynotyet.dominance import Question, check_ranks, thresholds
from whynotyet.engines.session import OPTIMAL, TIMEOUT, engine_capabilities, open_session
from whynotyet.errors import (
    ConfigurationError,
    InfeasibleByPreprocessing,
    SolverInternalFailure,
    SolverTimeout,
)
from whynotyet.geometry import (
    Box,
    FlexibleConstraint,
    check_measure,
    check_shape,
    measure_ceiling,
)
from whynotyet.solver.box import BoxModel, encode_box

FIRST_PROBE_OFFSET = 1e-8
STOP_GAP = 0.01
MIN_MEASURE = 1e-5


def _check_options(engine: str, shape: str, measure: str, precise: bool) -> None:
    caps = engine_capabilities(engine)
    if measure == "volume":
        if precise:
            raise ConfigurationError("precise optimization maximizes the perimeter only")
        if not caps["nonlinear"]:
            raise ConfigurationError(f"engine {engine!r} cannot express the volume measure")
    if shape == "cube_forall" and not caps["quantifiers"]:
        raise ConfigurationError(f"engine {engine!r} cannot encode the cube_forall shape")


def _push_measure(session, model: BoxModel, measure: str, probe: float) -> None:
    if measure == "volume":
        session.add_product(model.widths(), "==", probe)
    else:
        session.add_constraint(model.perimeter(), "==", probe)


def _binary_search(session, model: BoxModel, measure: str, high: float) -> Box:
    low = 0.0
    probe = high - FIRST_PROBE_OFFSET
    best = Box.invalid(measure)
    steps = 0
    while True:
        session.push()
        _push_measure(session, model, measure, probe)
        status = session.check()
        if status == OPTIMAL:
            best = model.read(session, measure)
            low = probe
        else:
            high = probe
        session.pop()
        steps += 1
        print(
            f"binary search step {steps}: probe={probe:.6f} status={status} "
            f"low={low:.6f} high={high:.6f}",
            flush=True,
        )
        if high - low < STOP_GAP or high < MIN_MEASURE:
            break
        probe = (high - low) / 2 + low
    return best


def _maximize(session, model: BoxModel, time_limit: Optional[float]) -> Box:
    perimeter = model.perimeter()
    session.add_constraint(perimeter, ">=", MIN_MEASURE)
    session.set_objective(perimeter, maximize=True)
    status = session.check()
    if status == TIMEOUT:
        raise SolverTimeout(f"perimeter maximization exceeded {time_limit}s")
    if status != OPTIMAL:
        return Box.invalid("perimeter")
    return model.read(session, "perimeter")


def optimize_box(
    questions: Sequence[Question],
    ranks: Sequence[int],
    shape: str,
    engine: str = "milp",
    measure: str = "perimeter",
    precise: bool = False,
    constraints: Sequence[FlexibleConstraint] = (),
    time_limit: Optional[float] = 60.0,
) -> Box:
    check_shape(shape)
    check_measure(measure)
    check_ranks(questions, ranks)
    _check_options(engine, shape, measure, precise)
    try:
        ks = thresholds(questions, ranks)
    except InfeasibleByPreprocessing as exc:
        print(f"box: pruned ({exc})", flush=True)
        return Box.invalid(measure)

    tuple_ids = [q.expected.tuple_id for q in questions]
    high = measure_ceiling(shape, questions[0].num_attributes, measure)
    print(
        f"box start: tuples={','.join(tuple_ids)} shape={shape} engine={engine} "
        f"measure={measure} precise={precise} constraints={len(constraints)}",
        flush=True,
    )
    try:
        with open_session(engine, time_limit) as session:
            model = encode_box(session, questions, ks, shape, constraints)
            if precise:
                box = _maximize(session, model, time_limit)
            else:
                box = _binary_search(session, model, measure, high)
    except SolverInternalFailure as exc:
        raise exc.with_context(tuple_ids, shape)
    print(f"box done: {box.describe()}", flush=True)
    return box
