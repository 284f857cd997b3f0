from __future__ import annotations

from typing import Optional, Sequence


class WhyNotYetError(Exception):
    pass


class ConfigurationError(WhyNotYetError, ValueError):
    """Malformed input detected before any solver call."""


class InfeasibleByPreprocessing(WhyNotYetError):
    def __init__(self, tuple_id: str, requested_rank: int, num_dominators: int) -> None:
        self.tuple_id = tuple_id
        self.requested_rank = requested_rank
        self.num_dominators = num_dominators
        super().__init__(
            f"tuple {tuple_id}: {num_dominators} dominators already fill rank {requested_rank}"
        )


class SolverTimeout(WhyNotYetError):
    pass


class SolverInternalFailure(WhyNotYetError):
    def __init__(
        self,
        message: str,
        tuple_ids: Optional[Sequence[str]] = None,
        shape: Optional[str] = None,
    ) -> None:
        self.message = message
        self.tuple_ids = list(tuple_ids) if tuple_ids else []
        self.shape = shape
        super().__init__(self._render())

    def _render(self) -> str:
        parts = [self.message]
        if self.tuple_ids:
            parts.append(f"tuples={','.join(self.tuple_ids)}")
        if self.shape:
            parts.append(f"shape={self.shape}")
        return " ".join(parts)

    def with_context(self, tuple_ids: Sequence[str], shape: Optional[str]) -> "SolverInternalFailure":
        if not self.tuple_ids:
            self.tuple_ids = list(tuple_ids)
        if self.shape is None:
            self.shape = shape
        self.args = (self._render(),)
        return self
