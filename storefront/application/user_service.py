from sqlalchemy.orm import Session
from storefront.domain.models import User
from .errors import NotFound
from .query import Page, PageRequest, QueryEngine
from .schemas import UserRead

class UserService:
    def __init__(self, db: Session):
        self.db = db
        self.query = QueryEngine(db, User, search_field="name", sort_field="name")

    def get(self, user_id: int) -> UserRead:
        user = self.db.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        return UserRead.model_validate(user)

    def list_users(self, request: PageRequest) -> Page[UserRead]:
        page = self.query.paginate(request)
        return Page(items=[UserRead.model_validate(u) for u in page.items], pagination=page.pagination)
