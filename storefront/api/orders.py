from typing import Optional
from fastapi import APIRouter, Depends, Query

from storefront.application.access import AccessPolicyGate, Actor
from storefront.application.order_service import OrderService
from storefront.application.query import PageRequest
from storefront.application.schemas import (
    ApiResponse,
    OrderCreate,
    OrderDetail,
    OrderRead,
    OrderStatusUpdate,
    OrderSummary,
    OrderWithItems,
    PaymentStatusUpdate,
)
from storefront.domain.status import OrderStatus, Role
from .deps import get_actor, get_gate, get_order_service, page_request

router = APIRouter(prefix="/order", tags=["order"])

@router.post("/add", response_model=ApiResponse[OrderWithItems], status_code=201)
def create_order(
    payload: OrderCreate,
    actor: Optional[Actor] = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
):
    """Place an order; signed-in callers are recorded as the customer, others check out as guests."""
    order = service.create(payload, customer_id=actor.id if actor else None)
    return ApiResponse(message="Order has been placed successfully", data=order)

@router.get("", response_model=ApiResponse[list[OrderSummary]])
def list_orders(
    query: PageRequest = Depends(page_request),
    status: Optional[OrderStatus] = Query(None, description="Only orders in this status"),
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service),
):
    gate.authorize(actor, [Role.ADMIN])
    page = service.get_all(query, status)
    return ApiResponse(message="Orders fetched successfully", data=page.items, pagination=page.pagination)

@router.get("/{order_id}", response_model=ApiResponse[OrderDetail])
def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    return ApiResponse(message="Order details fetched successfully", data=service.get_details(order_id))

@router.patch("/{order_id}/status", response_model=ApiResponse[OrderRead])
def change_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service),
):
    gate.authorize(actor, [Role.ADMIN])
    order = service.change_status(order_id, payload.status)
    return ApiResponse(message="Order status updated successfully", data=order)

@router.patch("/{order_id}/payment-status", response_model=ApiResponse[OrderRead])
def change_payment_status(
    order_id: int,
    payload: PaymentStatusUpdate,
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: OrderService = Depends(get_order_service),
):
    gate.authorize(actor, [Role.ADMIN])
    order = service.change_payment_status(order_id, payload.status)
    return ApiResponse(message="Payment status updated successfully", data=order)
