from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile

from storefront.application.access import AccessPolicyGate, Actor
from storefront.application.product_service import ProductService
from storefront.application.query import PageRequest
from storefront.application.schemas import ApiResponse, ProductCreate, ProductRead, ProductUpdate
from storefront.domain.status import Role
from .deps import get_actor, get_gate, get_product_service, page_request, read_upload

router = APIRouter(prefix="/product", tags=["product"])

def _uploads(files: Optional[list[UploadFile]]):
    uploads = [read_upload(f) for f in files or []]
    return [u for u in uploads if u is not None]

@router.get("", response_model=ApiResponse[list[ProductRead]])
def list_products(
    query: PageRequest = Depends(page_request),
    service: ProductService = Depends(get_product_service),
):
    page = service.list_products(query)
    return ApiResponse(message="All products fetched", data=page.items, pagination=page.pagination)

@router.get("/category/{category_id}", response_model=ApiResponse[list[ProductRead]])
def list_products_by_category(
    category_id: int,
    query: PageRequest = Depends(page_request),
    service: ProductService = Depends(get_product_service),
):
    page = service.list_by_category(category_id, query)
    return ApiResponse(message="Products found", data=page.items, pagination=page.pagination)

@router.get("/{product_id}", response_model=ApiResponse[ProductRead])
def get_product(product_id: int, service: ProductService = Depends(get_product_service)):
    return ApiResponse(message="Product found", data=service.get(product_id))

@router.post("", response_model=ApiResponse[ProductRead], status_code=201)
def create_product(
    name: str = Form(""),
    description: str = Form(""),
    price: Optional[Decimal] = Form(None),
    stock: int = Form(0),
    category_id: Optional[int] = Form(None),
    images: Optional[list[UploadFile]] = File(None),
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: ProductService = Depends(get_product_service),
):
    gate.authorize(actor, [Role.ADMIN])
    payload = ProductCreate(name=name, description=description, price=price, stock=stock, category_id=category_id)
    return ApiResponse(message="Product created successfully", data=service.create(payload, _uploads(images)))

@router.put("/{product_id}", response_model=ApiResponse[ProductRead])
def update_product(
    product_id: int,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[Decimal] = Form(None),
    stock: Optional[int] = Form(None),
    category_id: Optional[int] = Form(None),
    images: Optional[list[UploadFile]] = File(None),
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: ProductService = Depends(get_product_service),
):
    """Update the supplied fields; new images replace the whole image list."""
    gate.authorize(actor, [Role.ADMIN])
    payload = ProductUpdate(name=name, description=description, price=price, stock=stock, category_id=category_id)
    product = service.update(product_id, payload, _uploads(images))
    return ApiResponse(message="Product updated successfully", data=product)

@router.delete("/{product_id}", response_model=ApiResponse[ProductRead])
def delete_product(
    product_id: int,
    actor: Optional[Actor] = Depends(get_actor),
    gate: AccessPolicyGate = Depends(get_gate),
    service: ProductService = Depends(get_product_service),
):
    gate.authorize(actor, [Role.ADMIN])
    return ApiResponse(message="Product deleted successfully", data=service.delete(product_id))
