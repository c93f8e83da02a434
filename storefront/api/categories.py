from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from storefront.application.access import AccessPolicyGate, Actor
from storefront.application.category_service import CategoryService
from storefront.application.query import PageRequest
from storefront.application.schemas import ApiResponse, CategoryCreate, CategoryName, CategoryRead, CategoryUpdate
from storefront.domain.status import Role
from .deps import get_actor, get_category_service, get_gate, page_request, read_upload

router = APIRouter(prefix="/category", tags=["category"])

@router.get("", response_model=ApiResponse[list[CategoryRead]])
def list_categories(
    query: PageRequest = Depends(page_request),
    parent_id: Optional[int] = Query(None, description="List the children of this category"),
    service: CategoryService = Depends(get_category_service),
):
    """List one level of the category tree (root categories by default)."""
    page = service.list_categories(query, parent_id)
    return ApiResponse(message="Categories fetched successfully", data=page.items, pagination=page.pagination)

@router.get("/names", response_model=ApiResponse[list[CategoryName]])
def category_names(
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: CategoryService = Depends(get_category_service),
):
    gate.authorize(actor, [Role.ADMIN])
    return ApiResponse(message="Categories retrieved successfully", data=service.names())

@router.get("/{category_id}", response_model=ApiResponse[CategoryRead])
def get_category(category_id: int, service: CategoryService = Depends(get_category_service)):
    return ApiResponse(message="Category found", data=service.get(category_id))

@router.post("", response_model=ApiResponse[CategoryRead], status_code=201)
def create_category(
    name: str = Form(""),
    slug: str = Form(""),
    description: Optional[str] = Form(None),
    parent_id: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: CategoryService = Depends(get_category_service),
):
    admin = gate.authorize(actor, [Role.ADMIN])
    payload = CategoryCreate(name=name, slug=slug, description=description, parent_category_id=parent_id)
    category = service.create(payload, read_upload(image), created_by=admin.id)
    return ApiResponse(message="Category created successfully", data=category)

@router.put("/{category_id}", response_model=ApiResponse[CategoryRead])
def update_category(
    category_id: int,
    name: Optional[str] = Form(None),
    slug: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    parent_id: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: CategoryService = Depends(get_category_service),
):
    """Replace a category. Omitted text fields are kept; an omitted ``parent_id`` moves it to the root."""
    gate.authorize(actor, [Role.ADMIN])
    fields = {"name": name, "slug": slug, "description": description}
    payload = CategoryUpdate(
        **{key: value for key, value in fields.items() if value is not None},
        parent_category_id=parent_id,
    )
    category = service.update(category_id, payload, read_upload(image))
    return ApiResponse(message="Category updated successfully", data=category)

@router.delete("/{category_id}", response_model=ApiResponse[CategoryRead])
def delete_category(
    category_id: int,
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: CategoryService = Depends(get_category_service),
):
    gate.authorize(actor, [Role.ADMIN])
    return ApiResponse(message="Category deleted successfully", data=service.delete(category_id))
