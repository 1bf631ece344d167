# models.py — request/response models and batch outcomes

import json, math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field

from errors import ValidationError

INVALID_CUTS_JSON = 'Invalid JSON in "cuts" field.'
NO_CUTS = "No cuts provided. Send an array of { start, end } objects."


class CutRequest(BaseModel):
    start: Any = Field(None, description="HH:MM:SS, MM:SS or seconds")
    end:   Any = Field(None, description="HH:MM:SS, MM:SS or seconds")

    @classmethod
    def from_raw(cls, item: Any) -> "CutRequest":
        if isinstance(item, dict):
            return cls(start=item.get("start"), end=item.get("end"))
        return cls()


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def parse_cuts(raw: Optional[str]) -> List[CutRequest]:
    try:
        data = json.loads(raw or "[]", parse_constant=_reject_constant)
    except ValueError:
        raise ValidationError(INVALID_CUTS_JSON)
    if not isinstance(data, list) or not data:
        raise ValidationError(NO_CUTS)
    return [CutRequest.from_raw(item) for item in data]


@dataclass(frozen=True)
class NormalizedRange:
    start_seconds: float
    duration_seconds: float

    @classmethod
    def from_bounds(cls, start: float, end: float) -> Optional["NormalizedRange"]:
        try:
            start, end = float(start), float(end)
        except OverflowError:
            return None
        if not (math.isfinite(start) and math.isfinite(end)):
            return None
        if start < 0 or end <= start:
            return None
        return cls(start_seconds=start, duration_seconds=end - start)


@dataclass(frozen=True)
class CutSuccess:
    output_path: str


@dataclass(frozen=True)
class CutFailure:
    index: int
    message: str


CutOutcome = Union[CutSuccess, CutFailure]


@dataclass
class BatchResult:
    outcomes: List[CutOutcome] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def cuts(self) -> List[str]:
        return [o.output_path for o in self.outcomes if isinstance(o, CutSuccess)]

    @property
    def errors(self) -> List[CutFailure]:
        return [o for o in self.outcomes if isinstance(o, CutFailure)]

    @property
    def success(self) -> bool:
        return any(isinstance(o, CutSuccess) for o in self.outcomes)


class CutError(BaseModel):
    index: int
    error: str


class CutVideoResponse(BaseModel):
    success: bool
    cuts: List[str]
    errors: Optional[List[CutError]] = None
    processingTime: str

    @classmethod
    def from_batch(cls, result: BatchResult, elapsed_seconds: float) -> "CutVideoResponse":
        errors = [CutError(index=f.index, error=f.message) for f in result.errors]
        return cls(
            success=result.success,
            cuts=result.cuts,
            errors=errors or None,
            processingTime=f"{elapsed_seconds:.2f}s",
        )


class HealthResponse(BaseModel):
    status: str = "ok"
    ffmpegPath: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
