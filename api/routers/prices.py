"""
Prices API Endpoints.

Endpoints for the current gold price, explicit refreshes, gold/money
calculations and the simulated price history.
"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_pricing_engine
from api.errors import to_http_exception
from api.models import (
    CalculateRequest,
    CalculateResponse,
    HistoryPointResponse,
    HistoryResponse,
    PriceResponse,
    RefreshResponse,
)
from domain.errors import GoldPlatformError, RefreshError
from services.pricing_service import BASIS_SPOT, PricingEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/prices",
    response_model=PriceResponse,
    summary="Current Gold Price",
    description="Current gold price for one unit in the requested currency."
)
def get_price(
    currency: Optional[str] = Query(None, description="ISO currency code"),
    unit: str = Query("gram", description="gram, troy-ounce, ten-gram or tola"),
    basis: str = Query(BASIS_SPOT, description="spot or retail"),
    markup_percent: Optional[Decimal] = Query(None, description="Explicit markup; overrides the basis default"),
    refresh: bool = Query(False, description="Refresh the quote before pricing"),
    pricing: PricingEngine = Depends(get_pricing_engine),
):
    """
    Get the current gold price.

    **Example usage:**
    ```
    GET /api/v1/prices?currency=INR&unit=tola&basis=retail
    ```

    The response names the quote's source (`seed`, a provider name, or
    `simulated`) and the time it was produced. With `refresh=true`, a failed
    refresh is not an error: the last known quote is used and its `as_of`
    shows its age.
    """
    try:
        if refresh:
            try:
                pricing.oracle.refresh()
            except RefreshError as e:
                logger.warning(
                    f"Price refresh failed, pricing from the last known quote: {e}",
                    extra={"quote_source": pricing.oracle.current_quote().source},
                )
        view = pricing.quote(unit, currency, markup_percent=markup_percent, basis=basis)
        return PriceResponse.from_domain(view)

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch gold price: {str(e)}"
        )


@router.post(
    "/prices/refresh",
    response_model=RefreshResponse,
    summary="Refresh Gold Price",
    description="Refresh the quote from the configured providers, falling back to simulated drift."
)
def refresh_price(
    live: bool = Query(True, description="Try live providers; false applies simulated drift only"),
    pricing: PricingEngine = Depends(get_pricing_engine),
):
    """
    Refresh the gold price.

    Providers are tried in configured order within the refresh deadline. If
    all fail, the price drifts from the previous quote by a bounded random
    amount. With simulation disabled and every provider down, the call
    fails with 503 and the previous quote stays in effect.
    """
    try:
        quote = pricing.oracle.refresh(prefer_live=live)
        return RefreshResponse(
            price_per_gram=quote.price_per_gram,
            currency=pricing.converter.base_currency,
            as_of=quote.as_of,
            source=quote.source,
        )

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to refresh gold price: {str(e)}"
        )


@router.post(
    "/prices/calculate",
    response_model=CalculateResponse,
    summary="Calculate Gold or Money Amount",
    description="Cost of a gold amount, or the gold a money amount buys, at the current price."
)
def calculate(
    request: CalculateRequest,
    pricing: PricingEngine = Depends(get_pricing_engine),
):
    """
    Calculate a purchase amount.

    **Example request:**
    ```json
    {
      "gold_amount": "10",
      "currency": "USD"
    }
    ```

    Give exactly one of `gold_amount` and `money_amount`.
    """
    try:
        result = pricing.calculate(
            gold_amount=request.gold_amount,
            money_amount=request.money_amount,
            currency=request.currency,
        )
        return CalculateResponse.from_domain(result)

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to calculate amount: {str(e)}"
        )


@router.get(
    "/prices/history",
    response_model=HistoryResponse,
    summary="Gold Price History",
    description="Simulated daily price series around the current price."
)
def get_price_history(
    days: int = Query(30, description="Number of days, 1 to 365"),
    currency: Optional[str] = Query(None, description="ISO currency code"),
    pricing: PricingEngine = Depends(get_pricing_engine),
):
    try:
        points = pricing.history(days, currency)
        return HistoryResponse(
            currency=points[0].currency,
            days=days,
            points=[HistoryPointResponse.from_domain(point) for point in points],
        )

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to build price history: {str(e)}"
        )
