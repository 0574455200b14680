"""Exceptions raised by the metrics engine."""

from __future__ import annotations

from typing import Optional


class InputShapeError(TypeError):
    """Raised when a batch is not a sequence of records.

    An empty report would be indistinguishable from "no traffic", so
    malformed input is rejected instead of being aggregated.
    """

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        self.index = index
        if index is not None:
            message = f"record {index}: {message}"
        super().__init__(message)
