from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from whynotyet.errors import ConfigurationError


@dataclass(frozen=True)
class DataTuple:
    tuple_id: str = field(compare=False)
    values: Tuple[float, ...]

    @classmethod
    def from_strings(cls, raw: Sequence[str]) -> "DataTuple":
        if len(raw) < 2:
            raise ConfigurationError(f"tuple needs an identifier and at least one attribute: {raw!r}")
        try:
            values = tuple(float(str(v).strip()) for v in raw[1:])
        except ValueError as exc:
            raise ConfigurationError(f"tuple {raw[0]!r} has a non-numeric attribute") from exc
        return cls(tuple_id=str(raw[0]).strip(), values=values)

    @property
    def num_attributes(self) -> int:
        return len(self.values)

    def dominance(self, other: "DataTuple") -> int:
        """1 if this tuple dominates ``other``, -1 if dominated by it, 0 otherwise."""
        at_least = at_most = True
        strictly_better = strictly_worse = False
        for mine, theirs in zip(self.values, other.values):
            if mine < theirs:
                at_least = False
                strictly_worse = True
            elif mine > theirs:
                at_most = False
                strictly_better = True
        if at_least and strictly_better:
            return 1
        if at_most and strictly_worse:
            return -1
        return 0

    def dominates(self, other: "DataTuple") -> bool:
        return self.dominance(other) == 1


@dataclass
class Relation:
    name: str
    tuples: List[DataTuple]

    def __post_init__(self) -> None:
        if not self.tuples:
            raise ConfigurationError(f"relation {self.name!r} is empty")
        widths = {t.num_attributes for t in self.tuples}
        if len(widths) != 1:
            raise ConfigurationError(
                f"relation {self.name!r} mixes attribute counts {sorted(widths)}"
            )

    def __len__(self) -> int:
        return len(self.tuples)

    @property
    def num_attributes(self) -> int:
        return self.tuples[0].num_attributes

    def by_id(self, tuple_id: str) -> DataTuple:
        for t in self.tuples:
            if t.tuple_id == tuple_id:
                return t
        raise ConfigurationError(f"relation {self.name!r} has no tuple {tuple_id!r}")

    def project(self, num_attributes: int) -> "Relation":
        if not 1 <= num_attributes <= self.num_attributes:
            raise ConfigurationError(
                f"cannot keep {num_attributes} of {self.num_attributes} attributes"
            )
        return Relation(
            name=self.name,
            tuples=[DataTuple(t.tuple_id, t.values[:num_attributes]) for t in self.tuples],
        )

    def head(self, num_tuples: int) -> "Relation":
        return Relation(name=self.name, tuples=self.tuples[:num_tuples])


def relation_from_rows(name: str, rows: Iterable[Sequence[str]]) -> Relation:
    return Relation(name=name, tuples=[DataTuple.from_strings(row) for row in rows])


def load_relation_csv(path: Path, name: Optional[str] = None) -> Relation:
    lines = path.read_text().splitlines()
    skip = 0
    if lines and "," not in lines[0]:
        # leading relation name line
        name = name or lines[0].strip()
        skip = 1
    df = pd.read_csv(path, skiprows=skip, dtype=str, skipinitialspace=True)
    id_col = df.columns[0]
    df = df[df[id_col].astype(str).str.strip() != "End"].dropna(how="all")
    rows = df.astype(str).values.tolist()
    return relation_from_rows(name or path.stem, rows)


def write_relation_csv(relation: Relation, path: Path, decimals: int = 3) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    columns = ["ID"] + [f"Attribute{i + 1}" for i in range(relation.num_attributes)]
    rows = [
        [t.tuple_id] + [f"{v:.{decimals}f}" for v in t.values] for t in relation.tuples
    ]
    df = pd.DataFrame(rows, columns=columns)
    with path.open("w") as f:
        f.write(f"{relation.name}\n")
        df.to_csv(f, index=False)
        f.write("End\n")


def _flatten(record) -> Dict[str, object]:
    payload = asdict(record) if is_dataclass(record) else dict(record)
    flat: Dict[str, object] = {}
    for key, value in payload.items():
        if isinstance(value, (list, tuple)) and value and isinstance(value[0], (list, tuple)):
            flat[key] = ";".join(f"{lo:.6f}:{hi:.6f}" for lo, hi in value)
        elif isinstance(value, (list, tuple)):
            flat[key] = ";".join(str(v) for v in value)
        else:
            flat[key] = value
    return flat


def results_dataframe(records: Iterable[object]) -> pd.DataFrame:
    return pd.DataFrame([_flatten(r) for r in records])


def write_results_csv(df: pd.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
