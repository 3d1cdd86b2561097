"""
Row-level action capabilities for the requisition list views.

Which buttons a row offers is a pure function of the active view, the row's
status and the viewer's role, so it can be checked without rendering.
"""

from enum import Enum
from typing import FrozenSet, Union

from portal.config import settings
from portal.schemas.item_request import RequestStatus
from portal.services.views import RequisitionView


class Action(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    FULFILL = "fulfill"
    CONFIRM = "confirm"


_NO_ACTIONS: FrozenSet[Action] = frozenset()

# view -> (statuses on which the view offers actions, actions offered)
_VIEW_RULES = {
    RequisitionView.INCOMING: (
        {RequestStatus.PENDING.value},
        frozenset({Action.APPROVE, Action.REJECT}),
    ),
    RequisitionView.APPROVED: (
        {RequestStatus.APPROVED.value, RequestStatus.PARTIALLY_FULFILLED.value},
        frozenset({Action.FULFILL}),
    ),
    RequisitionView.FULFILLED: (
        {RequestStatus.FULFILLED.value, RequestStatus.PARTIALLY_FULFILLED.value},
        frozenset({Action.CONFIRM}),
    ),
}


def is_admin(role: str | None) -> bool:
    return bool(role) and role.upper() == settings.ADMIN_ROLE.upper()


def permitted_actions(
    view: Union[RequisitionView, str],
    status: Union[RequestStatus, str],
    role: str | None,
) -> FrozenSet[Action]:
    if not is_admin(role):
        return _NO_ACTIONS
    try:
        view = RequisitionView(view)
    except ValueError:
        return _NO_ACTIONS
    rule = _VIEW_RULES.get(view)
    if rule is None:
        return _NO_ACTIONS
    statuses, actions = rule
    status_code = status.value if isinstance(status, RequestStatus) else status
    return actions if status_code in statuses else _NO_ACTIONS


def ordered_actions(actions: FrozenSet[Action]) -> list[str]:
    """Stable button order for rendering."""
    return [a.value for a in Action if a in actions]
