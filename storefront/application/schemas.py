from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Generic, Optional, TypeVar

from storefront.domain.status import OrderStatus, PaymentStatus, PaymentMethod

T = TypeVar("T")

class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool

class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str = ""
    data: T
    pagination: Optional[Pagination] = None

class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str

# Users

class UserSummary(BaseModel):
    id: int
    name: str
    class Config:
        from_attributes = True

class CustomerSummary(UserSummary):
    email: str

class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: str
    profile_image: Optional[str] = None
    is_email_verified: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

# Catalog

class CategoryCreate(BaseModel):
    name: str = ""
    slug: str = ""
    description: Optional[str] = None
    parent_category_id: Optional[int] = None

class CategoryUpdate(BaseModel):
    # Unset fields keep their stored value; an explicit None parent moves to the root
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    parent_category_id: Optional[int] = None

class CategoryName(BaseModel):
    id: int
    name: str
    class Config:
        from_attributes = True

class CategoryRead(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    image: str
    image_url: Optional[str] = None
    parent_category_id: Optional[int] = None
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class ProductCreate(BaseModel):
    name: str = ""
    description: str = ""
    price: Optional[Decimal] = None
    stock: int = 0
    category_id: Optional[int] = None

class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    stock: Optional[int] = None
    category_id: Optional[int] = None

class ProductRead(BaseModel):
    id: int
    name: str
    description: str
    price: float
    stock: int
    images: list[str]
    image_urls: list[str] = []
    category_id: int
    category: Optional[CategoryName] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

# Orders

class AddressIn(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)

class AddressRead(AddressIn):
    id: int
    class Config:
        from_attributes = True

class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)

class OrderCreate(BaseModel):
    # Presence of items, addresses and payment method is enforced by the order service
    items: Optional[list[OrderItemIn]] = None
    coupon_code: Optional[str] = None
    discount: Optional[Decimal] = None
    shipping_address: Optional[AddressIn] = None
    billing_address: Optional[AddressIn] = None
    payment_method: Optional[PaymentMethod] = None
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: str = Field(min_length=1)
    notes: Optional[str] = None

class OrderStatusUpdate(BaseModel):
    status: OrderStatus

class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus

class OrderItemRead(BaseModel):
    id: int
    order_id: int
    product_id: int
    quantity: int
    price: float
    item_total: float
    class Config:
        from_attributes = True

class OrderRead(BaseModel):
    id: int
    tracking_number: str
    total_amount: float
    coupon_code: Optional[str] = None
    discount: Optional[float] = None
    payment_method: str
    customer_id: Optional[int] = None
    name: str
    email: str
    phone: str
    notes: Optional[str] = None
    order_status: str
    payment_status: str
    shipping_address_id: int
    billing_address_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class OrderWithItems(OrderRead):
    items: list[OrderItemRead] = []

class OrderSummary(BaseModel):
    id: int
    tracking_number: str
    name: str
    order_status: str
    payment_status: str
    total_amount: float
    created_at: datetime
    customer: Optional[UserSummary] = None
    class Config:
        from_attributes = True

class OrderProduct(BaseModel):
    id: int
    name: str
    cover_image: Optional[str] = None

class OrderDetailItem(OrderItemRead):
    product: OrderProduct

class OrderDetail(OrderRead):
    customer: Optional[CustomerSummary] = None
    shipping_address: AddressRead
    billing_address: AddressRead
    items: list[OrderDetailItem]
