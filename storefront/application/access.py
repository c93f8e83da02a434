"""Role based authorization for privileged operations.

Route handlers call ``AccessPolicyGate.authorize`` explicitly before touching
a service. The gate never looks at tokens or sessions; it only receives the
already-resolved ``Actor`` (or ``None`` for anonymous callers).
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from storefront.domain.status import Role
from .errors import Unauthorized


@dataclass(frozen=True)
class Actor:
    id: int
    role: Role


class AccessPolicyGate:
    def authorize(self, actor: Optional[Actor], roles: Iterable[Role]) -> Actor:
        if actor is None:
            raise Unauthorized("Authentication required")
        allowed = set(roles)
        if allowed and actor.role not in allowed:
            raise Unauthorized("You do not have permission to perform this action", status_code=403)
        return actor
