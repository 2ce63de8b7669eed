"""Evaluation result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum


class AlertState(str, Enum):
    SILENT = "SILENT"
    PENDING = "PENDING"
    FIRING = "FIRING"


@dataclass(frozen=True)
class AlertResult:
    labels: dict[str, str]
    duration: timedelta
    state: AlertState
    annotations: dict[str, str] = field(default_factory=dict)
