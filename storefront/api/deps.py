"""Per-request wiring of services and their collaborators."""

from typing import Optional

from fastapi import Depends, Query, Request, UploadFile
from sqlalchemy.orm import Session

from storefront.application.access import AccessPolicyGate, Actor
from storefront.application.address_store import AddressStore
from storefront.application.category_service import CategoryService
from storefront.application.errors import Unauthorized
from storefront.application.notifications import LoggingOrderNotifier, OrderNotifier
from storefront.application.order_service import OrderService
from storefront.application.product_service import ProductService
from storefront.application.query import PageRequest
from storefront.application.user_service import UserService
from storefront.core.logging_config import set_request_context
from storefront.core_settings import get_settings
from storefront.domain.models import User
from storefront.domain.status import Role
from storefront.infrastructure.auth_tokens import decode_access_token
from storefront.infrastructure.db import get_db
from storefront.infrastructure.storage import LocalMediaStore, MediaStore, Upload

BEARER_PREFIX = "Bearer "

def get_media_store() -> MediaStore:
    settings = get_settings()
    return LocalMediaStore(settings.MEDIA_ROOT, settings.MEDIA_BASE_URL)

def get_gate() -> AccessPolicyGate:
    return AccessPolicyGate()

def get_notifier() -> OrderNotifier:
    return LoggingOrderNotifier()

def get_actor(request: Request, db: Session = Depends(get_db)) -> Optional[Actor]:
    """Resolve the calling user from a bearer token; anonymous callers get ``None``."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    if not auth_header.startswith(BEARER_PREFIX):
        raise Unauthorized("Malformed authorization header")
    claims = decode_access_token(auth_header[len(BEARER_PREFIX):].strip())
    if not claims:
        raise Unauthorized("Invalid or expired token")
    try:
        user_id = int(claims.get("sub"))
    except (TypeError, ValueError):
        raise Unauthorized("Invalid token subject")
    user = db.get(User, user_id)
    if not user:
        raise Unauthorized("Unknown user")
    set_request_context(user_id=str(user.id))
    return Actor(id=user.id, role=Role(user.role))

def page_request(
    page: int = Query(1, ge=1, description="Page number, starting at 1"),
    limit: int = Query(10, ge=1, le=100, description="Rows per page"),
    search: str = Query("", max_length=100, description="Case-insensitive prefix match"),
    filter: str = Query("", description="'atoz' (default) or 'ztoa'"),
) -> PageRequest:
    return PageRequest(page=page, limit=limit, search=search, filter=filter)

def read_upload(file: Optional[UploadFile]) -> Optional[Upload]:
    if file is None or not file.filename:
        return None
    return Upload(filename=file.filename, content_type=file.content_type, content=file.file.read())

def get_category_service(
    db: Session = Depends(get_db), media: MediaStore = Depends(get_media_store)
) -> CategoryService:
    return CategoryService(db, media)

def get_product_service(
    db: Session = Depends(get_db), media: MediaStore = Depends(get_media_store)
) -> ProductService:
    return ProductService(db, media)

def get_order_service(
    db: Session = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
    notifier: OrderNotifier = Depends(get_notifier),
) -> OrderService:
    return OrderService(db, AddressStore(db), ProductService(db, media), media, notifier)

def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)
