"""
Purchases API Endpoints.

Endpoints for the digital gold purchase workflow: initiate, pay, complete,
cancel, the one-shot purchase, and transaction lookups.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_purchase_workflow
from api.errors import to_http_exception
from api.models import (
    InitiatePurchaseRequest,
    PaymentRequest,
    PurchaseRequest,
    TransactionListResponse,
    TransactionResponse,
)
from domain.errors import GoldPlatformError
from services.purchase_service import PurchaseWorkflow

router = APIRouter()


@router.post(
    "/purchases/initiate",
    response_model=TransactionResponse,
    status_code=201,
    summary="Initiate Purchase",
    description="Open a purchase and lock the current price."
)
def initiate_purchase(
    request: InitiatePurchaseRequest,
    workflow: PurchaseWorkflow = Depends(get_purchase_workflow),
):
    """
    Initiate a gold purchase.

    The price per gram and the total are locked now; later price moves do
    not change them.

    **Example request:**
    ```json
    {
      "gold_amount": "10",
      "currency": "USD",
      "buyer_ref": "buyer@example.com",
      "payment_method": "CREDIT_CARD"
    }
    ```
    """
    try:
        transaction = workflow.initiate(
            request.gold_amount,
            request.currency,
            buyer_ref=request.buyer_ref,
            payment_method=request.payment_method,
            notes=request.notes,
        )
        return TransactionResponse.from_domain(transaction)

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to initiate purchase: {str(e)}"
        )


@router.post(
    "/purchases/{transaction_id}/payment",
    response_model=TransactionResponse,
    summary="Process Payment",
    description="Charge the locked total and issue the digital gold certificate."
)
def process_payment(
    transaction_id: UUID,
    request: Optional[PaymentRequest] = None,
    workflow: PurchaseWorkflow = Depends(get_purchase_workflow),
):
    """
    Process payment for an initiated purchase.

    **Responses:**
    - 200: payment completed, certificate attached
    - 402: payment declined; the transaction is FAILED
    - 409: payment already completed (the stored transaction and its
      certificate are returned in `detail.transaction`), already in
      progress, or the transaction is not INITIATED
    - 503: the payment processor did not answer in time; the transaction
      stays PROCESSING and its outcome is recorded when the processor
      answers. Poll `GET /purchases/{transaction_id}` instead of retrying
    """
    try:
        details = request.payment_details if request else None
        transaction = workflow.process_payment(transaction_id, details)
        return TransactionResponse.from_domain(transaction)

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to process payment: {str(e)}"
        )


@router.post(
    "/purchases/{transaction_id}/complete",
    response_model=TransactionResponse,
    summary="Complete Purchase",
    description="Finalize a paid purchase and credit the buyer's gold holdings."
)
def complete_purchase(
    transaction_id: UUID,
    workflow: PurchaseWorkflow = Depends(get_purchase_workflow),
):
    """
    Complete a paid purchase.

    If crediting the buyer's holdings fails, the purchase stays COMPLETED
    with `holdings_credited` false and this endpoint can be called again to
    retry the credit.
    """
    try:
        transaction = workflow.complete(transaction_id)
        return TransactionResponse.from_domain(transaction)

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to complete purchase: {str(e)}"
        )


@router.post(
    "/purchases/{transaction_id}/cancel",
    response_model=TransactionResponse,
    summary="Cancel Purchase",
    description="Cancel a purchase that has not started payment."
)
def cancel_purchase(
    transaction_id: UUID,
    workflow: PurchaseWorkflow = Depends(get_purchase_workflow),
):
    try:
        transaction = workflow.cancel(transaction_id)
        return TransactionResponse.from_domain(transaction)

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to cancel purchase: {str(e)}"
        )


@router.post(
    "/purchases",
    response_model=TransactionResponse,
    status_code=201,
    summary="Purchase Gold",
    description="Initiate, pay and complete a purchase in one call."
)
def purchase_gold(
    request: PurchaseRequest,
    workflow: PurchaseWorkflow = Depends(get_purchase_workflow),
):
    """
    One-shot gold purchase.

    Runs the same steps as initiate, payment and complete. A declined
    payment answers 402 with the FAILED transaction in `detail.transaction`.
    """
    try:
        transaction = workflow.purchase(
            request.gold_amount,
            request.currency,
            buyer_ref=request.buyer_ref,
            payment_method=request.payment_method,
            notes=request.notes,
            payment_details=request.payment_details,
        )
        return TransactionResponse.from_domain(transaction)

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to execute purchase: {str(e)}"
        )


@router.get(
    "/purchases",
    response_model=TransactionListResponse,
    summary="List Purchases",
    description="Transactions for an account, newest first."
)
def list_purchases(
    buyer_ref: Optional[str] = Query(None, description="Account id, email or external user id"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    workflow: PurchaseWorkflow = Depends(get_purchase_workflow),
):
    try:
        transactions, total = workflow.list_for_account(
            buyer_ref,
            skip=(page - 1) * limit,
            limit=limit,
        )
        return TransactionListResponse(
            items=[TransactionResponse.from_domain(transaction) for transaction in transactions],
            total_count=total,
            page=page,
            limit=limit,
        )

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list purchases: {str(e)}"
        )


@router.get(
    "/purchases/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get Purchase",
    description="A single transaction by id."
)
def get_purchase(
    transaction_id: UUID,
    workflow: PurchaseWorkflow = Depends(get_purchase_workflow),
):
    try:
        return TransactionResponse.from_domain(workflow.get(transaction_id))

    except GoldPlatformError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch purchase: {str(e)}"
        )
