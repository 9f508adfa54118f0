"""
AI Models API Endpoints.

Read-only model catalog. Callers choose a model per request by key or id;
there is no process-wide switch.
"""

from fastapi import APIRouter, HTTPException

from api.errors import to_http_exception
from api.models import (
    AIModelListResponse,
    AIModelResponse,
    ModelPricingListResponse,
    ModelPricingResponse,
    ModelRecommendationListResponse,
    ModelRecommendationResponse,
)
from config.ai_models import MODEL_PRICING, PRICING_NOTE, RECOMMENDED_MODELS, find_model, list_models
from config.settings import get_settings
from domain.errors import GoldPlatformError

router = APIRouter()


@router.get(
    "/ai-models",
    response_model=AIModelListResponse,
    summary="List AI Models",
    description="Models available for question classification."
)
def list_ai_models():
    default_model = get_settings().ai_default_model
    return AIModelListResponse(
        models=[AIModelResponse.from_settings(model, default_model) for model in list_models()],
        default_model=default_model,
    )


@router.get(
    "/ai-models/recommended",
    response_model=ModelRecommendationListResponse,
    summary="Recommended AI Models",
    description="Suggested model per use case (performance, cost, reasoning, speed)."
)
def recommended_ai_models():
    return ModelRecommendationListResponse(
        recommendations=[ModelRecommendationResponse.from_settings(r) for r in RECOMMENDED_MODELS],
    )


@router.get(
    "/ai-models/pricing",
    response_model=ModelPricingListResponse,
    summary="AI Model Pricing",
    description="Approximate per-token prices of the catalog models."
)
def ai_model_pricing():
    return ModelPricingListResponse(
        pricing=[
            ModelPricingResponse(model_id=entry.model_id, input=entry.input, output=entry.output)
            for entry in MODEL_PRICING
        ],
        note=PRICING_NOTE,
    )


@router.get(
    "/ai-models/{model_key:path}",
    response_model=AIModelResponse,
    summary="Get AI Model",
    description="One catalog model by key (e.g. `gpt4o`) or model id (e.g. `openai/gpt-4o`)."
)
def get_ai_model(model_key: str):
    """
    Get a single model.

    **Example usage:**
    ```
    GET /api/v1/ai-models/claude35Haiku
    GET /api/v1/ai-models/anthropic/claude-3.5-haiku
    ```

    Unknown models answer 404.
    """
    try:
        model = find_model(model_key)
        return AIModelResponse.from_settings(model, get_settings().ai_default_model)

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch model: {str(e)}"
        )
