from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Tuple

from whynotyet.errors import ConfigurationError


SHAPES = ("triangle", "pyramid", "cube", "cube_forall")
MEASURES = ("perimeter", "volume")
CONSTRAINT_KINDS = ("min", "max", "space")


@dataclass(frozen=True)
class FlexibleConstraint:
    attribute: int
    kind: str
    value: float

    def __post_init__(self) -> None:
        if self.kind not in CONSTRAINT_KINDS:
            raise ConfigurationError(f"unknown constraint kind {self.kind!r}")
        if self.attribute < 0:
            raise ConfigurationError(f"constraint attribute must be >= 0, got {self.attribute}")


@dataclass
class Box:
    bounds: List[Tuple[float, float]] = field(default_factory=list)
    measure: float = -1.0
    measure_kind: str = "perimeter"

    @classmethod
    def invalid(cls, measure_kind: str = "perimeter") -> "Box":
        return cls(bounds=[], measure=-1.0, measure_kind=measure_kind)

    @classmethod
    def from_bounds(cls, bounds: List[Tuple[float, float]], measure_kind: str = "perimeter") -> "Box":
        box = cls(bounds=[(float(lo), float(hi)) for lo, hi in bounds], measure_kind=measure_kind)
        box.measure = box.perimeter if measure_kind == "perimeter" else box.volume
        return box

    @property
    def valid(self) -> bool:
        return self.measure > 0

    @property
    def widths(self) -> List[float]:
        return [hi - lo for lo, hi in self.bounds]

    @property
    def perimeter(self) -> float:
        return float(sum(self.widths))

    @property
    def volume(self) -> float:
        if not self.bounds:
            return 0.0
        return float(math.prod(self.widths))

    def contains(self, other: "Box", tol: float = 1e-12) -> bool:
        if len(self.bounds) != len(other.bounds):
            return False
        return all(
            lo - tol <= olo and ohi <= hi + tol
            for (lo, hi), (olo, ohi) in zip(self.bounds, other.bounds)
        )

    def describe(self, decimals: int = 5) -> str:
        if not self.valid:
            return "no valid box"
        parts = []
        for i, (lo, hi) in enumerate(self.bounds):
            if hi == 0.0:
                continue
            parts.append(f"attribute{i + 1}=[{lo:.{decimals}f}, {hi:.{decimals}f}]")
        return f"{self.measure_kind}={self.measure:.{decimals}f} " + " ".join(parts)


def check_shape(shape: str) -> str:
    if shape not in SHAPES:
        raise ConfigurationError(f"unknown weight-space shape {shape!r}, expected one of {SHAPES}")
    return shape


def check_measure(measure: str) -> str:
    if measure not in MEASURES:
        raise ConfigurationError(f"unknown box measure {measure!r}, expected one of {MEASURES}")
    return measure


def used_attributes(shape: str, num_attributes: int) -> int:
    check_shape(shape)
    if shape == "triangle":
        if num_attributes < 2:
            raise ConfigurationError("the triangle shape needs at least two attributes")
        return num_attributes - 1
    return num_attributes


def measure_ceiling(shape: str, num_attributes: int, measure: str = "perimeter") -> float:
    """Largest measure any box of ``shape`` can reach."""
    check_measure(measure)
    if measure == "volume":
        return 1.0
    if shape in ("cube", "cube_forall"):
        return float(used_attributes(shape, num_attributes))
    return 1.0
