"""Authorization guard.

Every role check in the service goes through ``can``/``authorize`` here;
routes and stores never compare roles inline.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.core.enums import Action, QuoteStatus, UserRole, CUSTOMER_QUOTE_STATUSES
from app.core.errors import AuthorizationError


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class CallerContext:
    user_id: int
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.STAFF, UserRole.ADMIN)


STAFF_ROLES = frozenset({UserRole.STAFF, UserRole.ADMIN})

# Actions a customer may perform on resources they own
CUSTOMER_OWNED_ACTIONS = frozenset({
    Action.VIEW_QUOTE_REQUEST,
    Action.VIEW_QUOTE,
    Action.SET_QUOTE_STATUS,
    Action.ACCEPT_QUOTE,
    Action.VIEW_SHIPMENT,
})

# Actions any authenticated caller may perform, ownership is implied
OPEN_ACTIONS = frozenset({Action.CREATE_QUOTE_REQUEST})


def can(
    role: UserRole,
    action: Action,
    resource_owner_id: Optional[int],
    caller_id: int,
    target_status: Optional[QuoteStatus] = None,
) -> Decision:
    if role in STAFF_ROLES:
        return Decision.ALLOW

    if role != UserRole.CUSTOMER:
        return Decision.DENY

    if action in OPEN_ACTIONS:
        return Decision.ALLOW

    if action not in CUSTOMER_OWNED_ACTIONS:
        return Decision.DENY

    if resource_owner_id is None or int(resource_owner_id) != int(caller_id):
        return Decision.DENY

    if action == Action.SET_QUOTE_STATUS and target_status not in CUSTOMER_QUOTE_STATUSES:
        return Decision.DENY

    return Decision.ALLOW


def authorize(
    caller: CallerContext,
    action: Action,
    resource_owner_id: Optional[int] = None,
    target_status: Optional[QuoteStatus] = None,
    resource_name: str = "resource",
) -> None:
    decision = can(caller.role, action, resource_owner_id, caller.user_id, target_status)
    if decision == Decision.ALLOW:
        return
    if action not in CUSTOMER_OWNED_ACTIONS:
        raise AuthorizationError("Insufficient permissions")
    if resource_owner_id is not None and int(resource_owner_id) == int(caller.user_id):
        allowed = ", ".join(s.value for s in CUSTOMER_QUOTE_STATUSES)
        raise AuthorizationError(f"Customers may only set a quote to one of: {allowed}")
    raise AuthorizationError(f"Access denied: you can only access your own {resource_name}s")


def scope_to_caller(query, model, caller: CallerContext):
    if not caller.is_staff:
        return query.where(model.customer_id == int(caller.user_id))
    return query
