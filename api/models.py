"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from config.ai_models import ModelRecommendation, ModelSettings
from domain.classification import ClassificationRecord
from domain.quote import CostBreakdown, HistoryPoint, MassBreakdown, PriceView
from domain.transaction import Transaction


# ============================================================================
# Price Models
# ============================================================================

class PriceResponse(BaseModel):
    """Current gold price for one unit and currency."""
    price: Decimal
    currency: str
    unit: str  # "per gram", "per troy ounce", ...
    as_of: datetime
    source: str
    markup_applied_percent: Optional[Decimal] = None

    @classmethod
    def from_domain(cls, view: PriceView) -> "PriceResponse":
        return cls(
            price=view.price,
            currency=view.currency,
            unit=view.unit,
            as_of=view.as_of,
            source=view.source,
            markup_applied_percent=view.markup_applied_percent,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "price": "65.50",
                "currency": "USD",
                "unit": "per gram",
                "as_of": "2025-01-01T12:00:00Z",
                "source": "goldapi",
                "markup_applied_percent": None
            }
        }


class RefreshResponse(BaseModel):
    """Quote produced by an explicit refresh."""
    price_per_gram: Decimal
    currency: str
    as_of: datetime
    source: str


class CalculateRequest(BaseModel):
    """Request to convert between a gold amount and a money amount."""
    gold_amount: Optional[Decimal] = Field(
        None,
        description="Grams of gold to price. Give this or money_amount, not both."
    )
    money_amount: Optional[Decimal] = Field(
        None,
        description="Money to spend. Give this or gold_amount, not both."
    )
    currency: Optional[str] = Field(None, description="ISO currency code")

    class Config:
        json_schema_extra = {
            "example": {
                "gold_amount": "10",
                "currency": "USD"
            }
        }


class CalculateResponse(BaseModel):
    """Result of a gold/money calculation."""
    calculation_type: str  # "gold_to_money" or "money_to_gold"
    gold_amount: Decimal
    money_amount: Decimal
    price_per_gram: Decimal
    currency: str
    as_of: datetime

    @classmethod
    def from_domain(cls, result: CostBreakdown | MassBreakdown) -> "CalculateResponse":
        if isinstance(result, CostBreakdown):
            return cls(
                calculation_type="gold_to_money",
                gold_amount=result.mass,
                money_amount=result.total,
                price_per_gram=result.price_per_gram,
                currency=result.currency,
                as_of=result.as_of,
            )
        return cls(
            calculation_type="money_to_gold",
            gold_amount=result.mass,
            money_amount=result.money,
            price_per_gram=result.price_per_gram,
            currency=result.currency,
            as_of=result.as_of,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "calculation_type": "gold_to_money",
                "gold_amount": "10",
                "money_amount": "655.00",
                "price_per_gram": "65.50",
                "currency": "USD",
                "as_of": "2025-01-01T12:00:00Z"
            }
        }


class HistoryPointResponse(BaseModel):
    date: str
    price: Decimal

    @classmethod
    def from_domain(cls, point: HistoryPoint) -> "HistoryPointResponse":
        return cls(date=point.date, price=point.price)


class HistoryResponse(BaseModel):
    """Simulated daily price series."""
    currency: str
    days: int
    points: List[HistoryPointResponse]


# ============================================================================
# Question Models
# ============================================================================

class QuestionRequest(BaseModel):
    """Question to classify."""
    question: str = Field(..., description="Free-text user question")
    buyer_ref: Optional[str] = Field(None, description="Account reference, for analytics")
    currency: Optional[str] = Field(None, description="Currency for the attached price")
    model: Optional[str] = Field(None, description="Model key or id; defaults to the configured model")

    class Config:
        json_schema_extra = {
            "example": {
                "question": "Is gold a good hedge against inflation?",
                "currency": "USD"
            }
        }


class QuestionAnalysisResponse(BaseModel):
    """Classification, recommendation and, for gold questions, the current price."""
    log_id: UUID
    is_gold_related: bool
    confidence: float
    decision_source: str  # "model" or "heuristic"
    recommended_action: str
    response: str
    reasoning: Optional[str] = None
    model: Optional[str] = None
    processing_ms: int
    current_price: Optional[PriceResponse] = None
    investment_facts: Optional[Dict[str, List[str]]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "log_id": "123e4567-e89b-12d3-a456-426614174000",
                "is_gold_related": True,
                "confidence": 0.92,
                "decision_source": "model",
                "recommended_action": "PURCHASE_GOLD",
                "response": "Gold has historically held its value...",
                "reasoning": "Asks about gold as an inflation hedge",
                "model": "anthropic/claude-3.5-sonnet",
                "processing_ms": 840,
                "current_price": None,
                "investment_facts": None
            }
        }


class QuestionLogResponse(BaseModel):
    """Single classification log entry."""
    log_id: UUID
    question: str
    is_gold_related: bool
    confidence: float
    decision_source: str
    recommended_action: str
    response: str
    reasoning: Optional[str] = None
    model: Optional[str] = None
    processing_ms: int
    buyer_ref: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, record: ClassificationRecord) -> "QuestionLogResponse":
        return cls(
            log_id=record.log_id,
            question=record.question,
            is_gold_related=record.is_in_domain,
            confidence=record.confidence,
            decision_source=record.decision_source.value,
            recommended_action=record.recommended_action.value,
            response=record.response_text,
            reasoning=record.rationale,
            model=record.model,
            processing_ms=record.processing_ms,
            buyer_ref=record.buyer_ref,
            created_at=record.created_at,
        )


class QuestionLogListResponse(BaseModel):
    items: List[QuestionLogResponse]
    total_count: int
    page: int
    limit: int


# ============================================================================
# AI Model Catalog
# ============================================================================

class AIModelResponse(BaseModel):
    key: str
    model_id: str
    description: str
    max_tokens: int
    temperature: float
    is_default: bool

    @classmethod
    def from_settings(cls, model: ModelSettings, default_model_id: str) -> "AIModelResponse":
        return cls(
            key=model.key,
            model_id=model.model_id,
            description=model.description,
            max_tokens=model.max_tokens,
            temperature=model.temperature,
            is_default=model.model_id == default_model_id,
        )


class AIModelListResponse(BaseModel):
    models: List[AIModelResponse]
    default_model: str


class ModelRecommendationResponse(BaseModel):
    use_case: str
    model_id: str
    reason: str

    @classmethod
    def from_settings(cls, recommendation: ModelRecommendation) -> "ModelRecommendationResponse":
        return cls(
            use_case=recommendation.use_case,
            model_id=recommendation.model_id,
            reason=recommendation.reason,
        )


class ModelRecommendationListResponse(BaseModel):
    recommendations: List[ModelRecommendationResponse]

    class Config:
        json_schema_extra = {
            "example": {
                "recommendations": [
                    {
                        "use_case": "best_cost",
                        "model_id": "anthropic/claude-3.5-haiku",
                        "reason": "Fast and cost-effective for simple tasks"
                    }
                ]
            }
        }


class ModelPricingResponse(BaseModel):
    model_id: str
    input: str
    output: str


class ModelPricingListResponse(BaseModel):
    pricing: List[ModelPricingResponse]
    note: str


# ============================================================================
# Purchase Models
# ============================================================================

class InitiatePurchaseRequest(BaseModel):
    """Request to open a purchase and lock its price."""
    gold_amount: Decimal = Field(..., description="Grams of gold to buy")
    currency: Optional[str] = Field(None, description="ISO currency code")
    buyer_ref: Optional[str] = Field(
        None,
        description="Account id, email or external user id; omit for a guest purchase"
    )
    payment_method: str = Field("WALLET", description="WALLET, CREDIT_CARD, DEBIT_CARD, UPI or BANK_TRANSFER")
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "gold_amount": "10",
                "currency": "USD",
                "buyer_ref": "buyer@example.com",
                "payment_method": "CREDIT_CARD"
            }
        }


class PaymentRequest(BaseModel):
    """Opaque payment details forwarded to the processor."""
    payment_details: Dict[str, Any] = Field(default_factory=dict)


class PurchaseRequest(InitiatePurchaseRequest):
    """One-shot purchase: initiate, pay and complete in one call."""
    payment_details: Dict[str, Any] = Field(default_factory=dict)


class CertificateResponse(BaseModel):
    certificate_id: str
    issued_at: datetime
    expires_at: datetime


class TransactionResponse(BaseModel):
    """Purchase transaction as stored."""
    transaction_id: UUID
    buyer_ref: Optional[str] = None
    gold_amount: Decimal
    price_per_gram: Decimal
    total_amount: Decimal
    currency: str
    payment_method: str
    payment_status: str
    status: str
    certificate: Optional[CertificateResponse] = None
    notes: Optional[str] = None
    holdings_credited: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, transaction: Transaction) -> "TransactionResponse":
        certificate = None
        if transaction.certificate is not None:
            certificate = CertificateResponse(
                certificate_id=transaction.certificate.certificate_id,
                issued_at=transaction.certificate.issued_at,
                expires_at=transaction.certificate.expires_at,
            )
        return cls(
            transaction_id=transaction.transaction_id,
            buyer_ref=transaction.buyer_ref,
            gold_amount=transaction.requested_mass,
            price_per_gram=transaction.locked_price_per_gram,
            total_amount=transaction.locked_total,
            currency=transaction.currency,
            payment_method=transaction.payment_method.value,
            payment_status=transaction.payment_state.value,
            status=transaction.workflow_state.value,
            certificate=certificate,
            notes=transaction.notes,
            holdings_credited=transaction.holdings_credited,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "transaction_id": "123e4567-e89b-12d3-a456-426614174003",
                "buyer_ref": "123e4567-e89b-12d3-a456-426614174002",
                "gold_amount": "10",
                "price_per_gram": "65.50",
                "total_amount": "655.00",
                "currency": "USD",
                "payment_method": "CREDIT_CARD",
                "payment_status": "COMPLETED",
                "status": "COMPLETED",
                "certificate": {
                    "certificate_id": "DGC-1A2B3C4D5E6F7A8B9C0D",
                    "issued_at": "2025-01-01T12:00:05Z",
                    "expires_at": "2026-01-01T12:00:05Z"
                },
                "notes": None,
                "holdings_credited": True,
                "created_at": "2025-01-01T12:00:00Z",
                "updated_at": "2025-01-01T12:00:06Z"
            }
        }


class TransactionListResponse(BaseModel):
    items: List[TransactionResponse]
    total_count: int
    page: int
    limit: int


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: Any

    class Config:
        json_schema_extra = {
            "example": {
                "detail": "Minimum gold amount is 0.001 grams"
            }
        }
