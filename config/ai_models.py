"""
Catalog of remote inference models available through OpenRouter.

The catalog is static configuration. Callers pick a model per request
(by key or by model id); there is no process-wide "current model".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from domain.errors import NotFoundError, ValidationError


@dataclass(frozen=True, slots=True)
class ModelSettings:
    key: str
    model_id: str
    description: str
    max_tokens: int = 500
    temperature: float = 0.3


AI_MODELS: Dict[str, ModelSettings] = {
    model.key: model
    for model in [
        ModelSettings("claude35Sonnet", "anthropic/claude-3.5-sonnet",
                      "Claude 3.5 Sonnet - Balanced performance and cost"),
        ModelSettings("claude35Haiku", "anthropic/claude-3.5-haiku",
                      "Claude 3.5 Haiku - Fast and cost-effective for simple tasks"),
        ModelSettings("gpt4o", "openai/gpt-4o",
                      "GPT-4o - Latest OpenAI model with excellent reasoning"),
        ModelSettings("gpt4oMini", "openai/gpt-4o-mini",
                      "GPT-4o mini - Small, inexpensive OpenAI model"),
        ModelSettings("geminiPro", "google/gemini-pro",
                      "Gemini Pro - Google's advanced language model"),
        ModelSettings("geminiFlash", "google/gemini-flash-1.5",
                      "Gemini Flash 1.5 - Very fast response times"),
        ModelSettings("llama370b", "meta-llama/llama-3.1-70b-instruct",
                      "Llama 3.1 70B - Meta's largest open model"),
        ModelSettings("mixtral", "mistralai/mixtral-8x7b-instruct",
                      "Mixtral 8x7B - Open mixture-of-experts model"),
    ]
}


@dataclass(frozen=True, slots=True)
class ModelRecommendation:
    use_case: str
    model_id: str
    reason: str


@dataclass(frozen=True, slots=True)
class ModelPricing:
    """Approximate OpenRouter list prices, per 1M tokens."""

    model_id: str
    input: str
    output: str


RECOMMENDED_MODELS: List[ModelRecommendation] = [
    ModelRecommendation("best_performance", "anthropic/claude-3.5-sonnet",
                        "Excellent reasoning and analysis capabilities"),
    ModelRecommendation("best_cost", "anthropic/claude-3.5-haiku",
                        "Fast and cost-effective for simple tasks"),
    ModelRecommendation("best_reasoning", "openai/gpt-4o",
                        "Superior reasoning and problem-solving abilities"),
    ModelRecommendation("best_speed", "google/gemini-flash-1.5",
                        "Very fast response times"),
]

MODEL_PRICING: List[ModelPricing] = [
    ModelPricing("anthropic/claude-3.5-sonnet", "$3.00 per 1M tokens", "$15.00 per 1M tokens"),
    ModelPricing("anthropic/claude-3.5-haiku", "$0.25 per 1M tokens", "$1.25 per 1M tokens"),
    ModelPricing("openai/gpt-4o", "$5.00 per 1M tokens", "$15.00 per 1M tokens"),
    ModelPricing("openai/gpt-4o-mini", "$0.15 per 1M tokens", "$0.60 per 1M tokens"),
    ModelPricing("google/gemini-pro", "$0.50 per 1M tokens", "$1.50 per 1M tokens"),
]

PRICING_NOTE = "Prices are approximate and may vary. Check OpenRouter for current pricing."


def list_models() -> List[ModelSettings]:
    return list(AI_MODELS.values())


def _lookup(selector: str) -> Optional[ModelSettings]:
    if selector in AI_MODELS:
        return AI_MODELS[selector]
    for model in AI_MODELS.values():
        if model.model_id == selector:
            return model
    return None


def find_model(selector: str) -> ModelSettings:
    """
    Catalog entry by key or model id.

    Raises:
        NotFoundError: the catalog has no such model
    """
    model = _lookup(selector)
    if model is None:
        raise NotFoundError(f"Model {selector!r} not found")
    return model


def resolve_model(selector: Optional[str], default_model_id: str) -> ModelSettings:
    """
    Resolve a model by catalog key or model id.

    None selects `default_model_id`. A model id outside the catalog is only
    accepted when it is the configured default (settings fall back to
    temperature 0.3 / 500 tokens).
    """
    if selector is None or selector.strip() == "":
        selector = default_model_id

    model = _lookup(selector)
    if model is not None:
        return model

    if selector == default_model_id:
        return ModelSettings(key="default", model_id=selector, description="Configured default model")

    raise ValidationError(
        f"Model {selector!r} not found. Available models: {', '.join(AI_MODELS)}"
    )


__all__ = [
    "AI_MODELS",
    "MODEL_PRICING",
    "PRICING_NOTE",
    "RECOMMENDED_MODELS",
    "ModelPricing",
    "ModelRecommendation",
    "ModelSettings",
    "find_model",
    "list_models",
    "resolve_model",
]
