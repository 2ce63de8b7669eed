"""Range query result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Sample:
    timestamp: datetime
    value: float


@dataclass
class Series:
    labels: dict[str, str] = field(default_factory=dict)
    samples: list[Sample] = field(default_factory=list)


Matrix = list[Series]
