"""
Classification log repository (append-only).

Records are inserted once and never updated; listing supports the filters
used for analytics (in-domain flag, buyer) with skip/limit pagination.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Tuple
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.classification import ClassificationRecord, DecisionSource, RecommendedAction
from repositories.timestamps import parse_utc_datetime, to_iso_utc

_QUESTION_LOGS_TABLE: str = "question_logs"


class ClassificationLogRepository(ABC):
    @abstractmethod
    def append(self, record: ClassificationRecord) -> ClassificationRecord:
        """Persist a new record."""

    @abstractmethod
    def list(
        self,
        *,
        is_in_domain: Optional[bool] = None,
        buyer_ref: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[ClassificationRecord], int]:
        """Page of records, newest first, plus the total matching count."""


class InMemoryClassificationLogRepository(ClassificationLogRepository):
    def __init__(self) -> None:
        self._records: List[ClassificationRecord] = []
        self._lock = threading.Lock()

    def append(self, record: ClassificationRecord) -> ClassificationRecord:
        with self._lock:
            self._records.append(record)
        return record

    def list(
        self,
        *,
        is_in_domain: Optional[bool] = None,
        buyer_ref: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[ClassificationRecord], int]:
        with self._lock:
            matching = [
                record for record in self._records
                if (is_in_domain is None or record.is_in_domain == is_in_domain)
                and (buyer_ref is None or record.buyer_ref == buyer_ref)
            ]
        matching.sort(key=lambda record: record.created_at, reverse=True)
        return matching[skip:skip + limit], len(matching)


def _record_to_row(record: ClassificationRecord) -> dict[str, Any]:
    return {
        "log_id": str(record.log_id),
        "question": record.question,
        "is_in_domain": record.is_in_domain,
        "confidence": record.confidence,
        "decision_source": record.decision_source.value,
        "recommended_action": record.recommended_action.value,
        "response_text": record.response_text,
        "rationale": record.rationale,
        "model": record.model,
        "processing_ms": record.processing_ms,
        "buyer_ref": record.buyer_ref,
        "created_at_utc": to_iso_utc(record.created_at, name="created_at"),
    }


def _row_to_record(row: Mapping[str, Any]) -> ClassificationRecord:
    return ClassificationRecord(
        log_id=UUID(str(row["log_id"])),
        question=str(row["question"]),
        is_in_domain=bool(row["is_in_domain"]),
        confidence=float(row["confidence"]),
        decision_source=DecisionSource(str(row["decision_source"])),
        recommended_action=RecommendedAction(str(row["recommended_action"])),
        response_text=str(row["response_text"]),
        processing_ms=int(row.get("processing_ms") or 0),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        rationale=row.get("rationale"),
        model=row.get("model"),
        buyer_ref=row.get("buyer_ref"),
    )


class SupabaseClassificationLogRepository(ClassificationLogRepository):
    def __init__(self, client: Client) -> None:
        self._client = client

    def append(self, record: ClassificationRecord) -> ClassificationRecord:
        response = self._client.table(_QUESTION_LOGS_TABLE).insert(_record_to_row(record)).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to log classification: {error}")
        return record

    def list(
        self,
        *,
        is_in_domain: Optional[bool] = None,
        buyer_ref: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[ClassificationRecord], int]:
        query = self._client.table(_QUESTION_LOGS_TABLE).select("*", count="exact")
        if is_in_domain is not None:
            query = query.eq("is_in_domain", is_in_domain)
        if buyer_ref is not None:
            query = query.eq("buyer_ref", buyer_ref)
        response = query.order("created_at_utc", desc=True).range(skip, skip + limit - 1).execute()

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list classification logs: {error}")

        rows = getattr(response, "data", None) or []
        total = getattr(response, "count", None)
        return [_row_to_record(row) for row in rows], int(total if total is not None else len(rows))


__all__ = [
    "ClassificationLogRepository",
    "InMemoryClassificationLogRepository",
    "SupabaseClassificationLogRepository",
]
