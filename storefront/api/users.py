from typing import Optional
from fastapi import APIRouter, Depends

from storefront.application.access import AccessPolicyGate, Actor
from storefront.application.query import PageRequest
from storefront.application.schemas import ApiResponse, UserRead
from storefront.application.user_service import UserService
from storefront.domain.status import Role
from .deps import get_actor, get_gate, get_user_service, page_request

router = APIRouter(prefix="/users", tags=["users"])

@router.get("", response_model=ApiResponse[list[UserRead]])
def list_users(
    query: PageRequest = Depends(page_request),
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: UserService = Depends(get_user_service),
):
    gate.authorize(actor, [Role.ADMIN])
    page = service.list_users(query)
    return ApiResponse(message="Users fetched successfully", data=page.items, pagination=page.pagination)

@router.get("/me", response_model=ApiResponse[UserRead])
def current_user(
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: UserService = Depends(get_user_service),
):
    me = gate.authorize(actor, list(Role))
    return ApiResponse(message="Current user", data=service.get(me.id))
