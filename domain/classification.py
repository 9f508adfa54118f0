"""
Domain: question classification decisions and their audit log.

A ClassificationRecord is written once per analysed question and never
updated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


class DecisionSource(str, Enum):
    MODEL = "model"
    HEURISTIC = "heuristic"


class RecommendedAction(str, Enum):
    PURCHASE_GOLD = "PURCHASE_GOLD"
    REDIRECT_TO_OTHER_API = "REDIRECT_TO_OTHER_API"
    GENERAL_INFO = "GENERAL_INFO"


@dataclass(frozen=True, slots=True)
class ClassificationDecision:
    is_in_domain: bool
    confidence: float
    rationale: str
    decision_source: DecisionSource
    recommended_action: RecommendedAction
    model: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("confidence must be within [0, 1]")


@dataclass(frozen=True, slots=True)
class ClassificationRecord:
    log_id: UUID
    question: str
    is_in_domain: bool
    confidence: float
    decision_source: DecisionSource
    recommended_action: RecommendedAction
    response_text: str
    processing_ms: int
    created_at: datetime
    rationale: Optional[str] = None
    model: Optional[str] = None
    buyer_ref: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
