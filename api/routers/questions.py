"""
Questions API Endpoints.

Endpoints for classifying user questions and reviewing the classification log.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_question_service
from api.errors import to_http_exception
from api.models import (
    PriceResponse,
    QuestionAnalysisResponse,
    QuestionLogListResponse,
    QuestionLogResponse,
    QuestionRequest,
)
from domain.errors import GoldPlatformError
from services.question_service import QuestionService

router = APIRouter()


@router.post(
    "/questions/analyze",
    response_model=QuestionAnalysisResponse,
    summary="Analyze Question",
    description="Decide whether a question is about gold investment and recommend a next step."
)
def analyze_question(
    request: QuestionRequest,
    questions: QuestionService = Depends(get_question_service),
):
    """
    Classify a question.

    **How it works:**
    1. The configured (or requested) model classifies the question
    2. If the model is unreachable or answers malformed output, a keyword
       heuristic decides instead (`decision_source: "heuristic"`)
    3. Gold questions get an answer, the current price and investment facts
    4. Other questions are marked for redirection

    Every call is logged.

    **Example request:**
    ```json
    {
      "question": "Should I buy gold this year?",
      "currency": "INR"
    }
    ```
    """
    try:
        analysis = questions.analyze(
            request.question,
            buyer_ref=request.buyer_ref,
            currency=request.currency,
            model=request.model,
        )
        record = analysis.record
        return QuestionAnalysisResponse(
            log_id=record.log_id,
            is_gold_related=record.is_in_domain,
            confidence=record.confidence,
            decision_source=record.decision_source.value,
            recommended_action=record.recommended_action.value,
            response=record.response_text,
            reasoning=record.rationale,
            model=record.model,
            processing_ms=record.processing_ms,
            current_price=PriceResponse.from_domain(analysis.price) if analysis.price else None,
            investment_facts=analysis.facts,
        )

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to analyze question: {str(e)}"
        )


@router.get(
    "/questions/logs",
    response_model=QuestionLogListResponse,
    summary="List Classification Logs",
    description="Classification log entries, newest first."
)
def list_question_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    is_gold_related: Optional[bool] = Query(None, description="Filter by decision"),
    buyer_ref: Optional[str] = Query(None, description="Filter by account reference"),
    questions: QuestionService = Depends(get_question_service),
):
    try:
        records, total = questions.list_logs(
            is_in_domain=is_gold_related,
            buyer_ref=buyer_ref,
            skip=(page - 1) * limit,
            limit=limit,
        )
        return QuestionLogListResponse(
            items=[QuestionLogResponse.from_domain(record) for record in records],
            total_count=total,
            page=page,
            limit=limit,
        )

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list classification logs: {str(e)}"
        )
