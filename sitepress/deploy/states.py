"""Deployment lifecycle states.

    pending -> building -> deploying -> ready | error | canceled

Transitions only move forward; terminal states are absorbing.
"""

from enum import Enum


class DeploymentStatus(str, Enum):
    PENDING = "pending"
    BUILDING = "building"
    DEPLOYING = "deploying"
    READY = "ready"
    ERROR = "error"
    CANCELED = "canceled"


TERMINAL_STATUSES = frozenset(
    {DeploymentStatus.READY, DeploymentStatus.ERROR, DeploymentStatus.CANCELED}
)
CANCELABLE_STATUSES = frozenset(
    {DeploymentStatus.PENDING, DeploymentStatus.BUILDING, DeploymentStatus.DEPLOYING}
)

_RANK = {
    DeploymentStatus.PENDING: 0,
    DeploymentStatus.BUILDING: 1,
    DeploymentStatus.DEPLOYING: 2,
}


def is_terminal(status: str) -> bool:
    return DeploymentStatus(status) in TERMINAL_STATUSES


def can_transition(current: str, new: str) -> bool:
    """Whether a deployment in ``current`` may move to ``new``.

    Any non-terminal state may jump straight to a terminal one. Among
    non-terminal states only strictly forward moves are allowed, so a
    provider briefly reporting an earlier phase is ignored.
    """
    current = DeploymentStatus(current)
    new = DeploymentStatus(new)
    if current in TERMINAL_STATUSES:
        return False
    if new in TERMINAL_STATUSES:
        return True
    return _RANK[new] > _RANK[current]
