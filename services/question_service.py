"""
Question service: classify a user question and recommend a next step.

Handles:
- Input validation (non-empty question)
- Classification through the model-or-heuristic classifier
- Response text for gold questions (remote model, canned fallback)
- Current price and investment facts attached to gold recommendations
- An append-only ClassificationRecord for every call
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional
from uuid import uuid4

from domain.classification import (
    ClassificationDecision,
    ClassificationRecord,
    RecommendedAction,
)
from domain.errors import ValidationError
from domain.quote import PriceView
from domain.time import utc_now
from repositories.classification_log_repository import ClassificationLogRepository
from services.classifier import Classifier
from services.fallback import Attempt, FallbackChain
from services.inference_client import InferenceClient
from services.pricing_service import PricingEngine, investment_facts

logger = logging.getLogger(__name__)

MAX_QUESTION_LENGTH = 2000

RESPONSE_SYSTEM_PROMPT = (
    "You are a knowledgeable gold investment advisor. Provide helpful, accurate "
    "information and naturally suggest digital gold investment options."
)

RESPONSE_USER_TEMPLATE = """The user asked: "{question}"

This is a gold investment related question. Provide a helpful, informative response that:
1. Answers their specific question about gold investment
2. Includes relevant facts and data about gold
3. Naturally suggests digital gold as a convenient investment option
4. Is encouraging but not pushy
5. Keeps the response under 200 words"""

CANNED_GOLD_RESPONSE = (
    "Thank you for your question about gold investment! Gold has been a reliable store of "
    "value for centuries and offers excellent portfolio diversification. Digital gold makes it "
    "easy to invest in gold without the hassle of physical storage. Would you like to explore "
    "purchasing digital gold?"
)

REDIRECT_RESPONSE = (
    "This question doesn't appear to be related to gold investment. "
    "I'll redirect you to the appropriate service."
)


@dataclass(frozen=True, slots=True)
class QuestionAnalysis:
    record: ClassificationRecord
    decision: ClassificationDecision
    price: Optional[PriceView] = None
    facts: Optional[dict] = None


class QuestionService:
    def __init__(
        self,
        classifier: Classifier,
        inference: InferenceClient,
        pricing: PricingEngine,
        logs: ClassificationLogRepository,
        *,
        response_timeout: float = 10.0,
    ) -> None:
        self._classifier = classifier
        self._inference = inference
        self._pricing = pricing
        self._logs = logs
        self._response_timeout = response_timeout

    def analyze(
        self,
        question: str,
        *,
        buyer_ref: Optional[str] = None,
        currency: Optional[str] = None,
        model: Optional[str] = None,
    ) -> QuestionAnalysis:
        """
        Classify a question, build the recommendation and log it.

        Raises:
            ValidationError: the question is empty, too long, or the model/currency is unknown
        """
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Question is required and cannot be empty")
        if len(question) > MAX_QUESTION_LENGTH:
            raise ValidationError(f"Question must be at most {MAX_QUESTION_LENGTH} characters")

        # Resolve up front so bad input fails before any remote call.
        model_settings = self._classifier.resolve_model(model)
        code = self._pricing.converter.normalize(currency)

        started = time.monotonic()
        decision = self._classifier.classify(question, model=model_settings.model_id)

        price: Optional[PriceView] = None
        facts: Optional[dict] = None
        if decision.is_in_domain:
            response_text = self._compose_response(question, model_settings.model_id)
            price = self._pricing.quote("gram", code)
            facts = investment_facts()
            action = decision.recommended_action
            if action is RecommendedAction.REDIRECT_TO_OTHER_API:
                action = RecommendedAction.PURCHASE_GOLD
        else:
            response_text = REDIRECT_RESPONSE
            action = RecommendedAction.REDIRECT_TO_OTHER_API

        record = ClassificationRecord(
            log_id=uuid4(),
            question=question,
            is_in_domain=decision.is_in_domain,
            confidence=decision.confidence,
            decision_source=decision.decision_source,
            recommended_action=action,
            response_text=response_text,
            processing_ms=int((time.monotonic() - started) * 1000),
            created_at=utc_now(),
            rationale=decision.rationale,
            model=decision.model,
            buyer_ref=buyer_ref,
        )
        self._logs.append(record)

        logger.info(
            "Question classified",
            extra={
                "log_id": str(record.log_id),
                "is_in_domain": record.is_in_domain,
                "decision_source": record.decision_source.value,
                "processing_ms": record.processing_ms,
            },
        )
        return QuestionAnalysis(record=record, decision=decision, price=price, facts=facts)

    def _compose_response(self, question: str, model: str) -> str:
        settings = self._classifier.resolve_model(model)
        attempts: List[Attempt[str]] = []
        if self._inference.configured:
            attempts.append(Attempt(
                f"model:{settings.model_id}",
                lambda timeout: self._inference.chat(
                    settings,
                    [
                        {"role": "system", "content": RESPONSE_SYSTEM_PROMPT},
                        {"role": "user", "content": RESPONSE_USER_TEMPLATE.format(question=question)},
                    ],
                    timeout=timeout,
                    temperature=0.7,
                    max_tokens=300,
                ),
            ))
        chain: FallbackChain[str] = FallbackChain(
            attempts,
            fallback=Attempt("canned", lambda _timeout: CANNED_GOLD_RESPONSE),
            attempt_timeout=self._response_timeout,
            deadline=self._response_timeout,
            label="gold-response",
        )
        return chain.resolve().value

    def list_logs(
        self,
        *,
        is_in_domain: Optional[bool] = None,
        buyer_ref: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[ClassificationRecord], int]:
        """Return a page of classification records (newest first) and the total count."""

        if skip < 0 or limit < 1:
            raise ValidationError("skip must be >= 0 and limit must be >= 1")
        return self._logs.list(is_in_domain=is_in_domain, buyer_ref=buyer_ref, skip=skip, limit=limit)


__all__ = ["QuestionAnalysis", "QuestionService"]
