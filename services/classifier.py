"""
Question classifier: is a free-form question about gold investment?

Prefers the remote model, which must answer with a JSON decision object.
Transport failures, timeouts, a missing API key and malformed answers all
fall back to a keyword heuristic. The heuristic is total: any string gets a
decision, so classification is available even with the model unreachable.
Every decision records where it came from (`decision_source`).
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool

from config.ai_models import ModelSettings, resolve_model
from domain.classification import ClassificationDecision, DecisionSource, RecommendedAction
from services.fallback import Attempt, FallbackChain
from services.inference_client import InferenceClient

logger = logging.getLogger(__name__)

GOLD_KEYWORDS: List[str] = [
    "gold", "golden", "bullion", "precious metal", "digital gold",
    "gold investment", "gold price", "gold market", "gold etf",
    "gold mutual fund", "gold ira", "gold jewelry", "gold jewellery", "gold coins",
    "gold bars", "gold mining", "gold stock", "gold fund", "sovereign gold bond",
    "xau", "karat", "carat", "tola",
]

HEURISTIC_IN_DOMAIN_CONFIDENCE = 0.7
HEURISTIC_OUT_OF_DOMAIN_CONFIDENCE = 0.6

SYSTEM_PROMPT = (
    "You are a financial advisor specializing in gold investments. "
    "Analyze questions and provide accurate, helpful responses."
)

USER_PROMPT_TEMPLATE = """Analyze the following user question and determine if it's related to gold investment.

Question: "{question}"

Respond with a single JSON object and nothing else:
{{
  "isGoldRelated": true/false,
  "confidence": 0.0-1.0,
  "reasoning": "brief explanation",
  "suggestedAction": "PURCHASE_GOLD" or "REDIRECT_TO_OTHER_API" or "GENERAL_INFO"
}}

Gold investment topics include gold prices and market trends, investment strategies,
digital gold purchase, gold ETFs and mutual funds, jewelry as investment, mining stocks,
storage and security, gold IRAs and retirement planning with gold, and gold versus other investments.

Non-gold topics include other commodities (silver, platinum, etc.), stocks, bonds, real estate,
cryptocurrency, and general personal finance not specific to gold."""

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


class ModelDecision(BaseModel):
    """Response-shape contract for the remote model's decision."""

    model_config = ConfigDict(extra="ignore")

    is_gold_related: StrictBool = Field(validation_alias=AliasChoices("isGoldRelated", "isInDomain"))
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    suggested_action: Optional[RecommendedAction] = Field(
        default=None, validation_alias=AliasChoices("suggestedAction", "recommendedAction")
    )


def extract_json_object(text: str) -> str:
    """Pull the JSON object out of a model reply that may be fenced or chatty."""

    fenced = _FENCED_JSON.search(text)
    if fenced:
        return fenced.group(1)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object in model response")
    return text[start:end + 1]


def heuristic_decision(text: str, keywords: Sequence[str] = GOLD_KEYWORDS) -> ClassificationDecision:
    """Keyword-membership classification. Always returns a decision."""

    lowered = (text or "").lower()
    matched = [keyword for keyword in keywords if keyword in lowered]
    if matched:
        return ClassificationDecision(
            is_in_domain=True,
            confidence=HEURISTIC_IN_DOMAIN_CONFIDENCE,
            rationale=f"Contains gold-related keywords: {', '.join(matched[:5])}",
            decision_source=DecisionSource.HEURISTIC,
            recommended_action=RecommendedAction.PURCHASE_GOLD,
        )
    return ClassificationDecision(
        is_in_domain=False,
        confidence=HEURISTIC_OUT_OF_DOMAIN_CONFIDENCE,
        rationale="No gold-related keywords found",
        decision_source=DecisionSource.HEURISTIC,
        recommended_action=RecommendedAction.REDIRECT_TO_OTHER_API,
    )


class Classifier:
    def __init__(
        self,
        inference: InferenceClient,
        *,
        default_model: str,
        timeout: float = 10.0,
        deadline: Optional[float] = 20.0,
        keywords: Sequence[str] = GOLD_KEYWORDS,
    ) -> None:
        self._inference = inference
        self._default_model = default_model
        self._timeout = timeout
        self._deadline = deadline
        self._keywords = list(keywords)

    def resolve_model(self, model: Optional[str]) -> ModelSettings:
        return resolve_model(model, self._default_model)

    def classify(self, text: str, model: Optional[str] = None) -> ClassificationDecision:
        """
        Classify `text`, naming the model explicitly or using the default.

        Raises:
            ValidationError: `model` is not in the catalog
        """
        settings = self.resolve_model(model)

        attempts: List[Attempt[ClassificationDecision]] = []
        if self._inference.configured:
            attempts.append(Attempt(f"model:{settings.model_id}", lambda timeout: self._ask_model(text, settings, timeout)))
        else:
            logger.debug("Inference not configured; classifying with heuristic only")

        chain: FallbackChain[ClassificationDecision] = FallbackChain(
            attempts,
            fallback=Attempt(DecisionSource.HEURISTIC.value, lambda _timeout: heuristic_decision(text, self._keywords)),
            attempt_timeout=self._timeout,
            deadline=self._deadline,
            label="question-classification",
        )
        resolution = chain.resolve()
        if resolution.used_fallback and resolution.failures:
            logger.warning(
                "Classification fell back to heuristic",
                extra={"failures": [f"{f.name}: {f.reason}" for f in resolution.failures]},
            )
        return resolution.value

    def _ask_model(self, text: str, settings: ModelSettings, timeout: float) -> ClassificationDecision:
        reply = self._inference.chat(
            settings,
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT_TEMPLATE.format(question=text)},
            ],
            timeout=timeout,
        )
        decision = ModelDecision.model_validate_json(extract_json_object(reply))
        action = decision.suggested_action or (
            RecommendedAction.PURCHASE_GOLD if decision.is_gold_related else RecommendedAction.REDIRECT_TO_OTHER_API
        )
        return ClassificationDecision(
            is_in_domain=decision.is_gold_related,
            confidence=decision.confidence,
            rationale=decision.reasoning or "Model decision",
            decision_source=DecisionSource.MODEL,
            recommended_action=action,
            model=settings.model_id,
        )


__all__ = [
    "GOLD_KEYWORDS",
    "Classifier",
    "ModelDecision",
    "extract_json_object",
    "heuristic_decision",
]
