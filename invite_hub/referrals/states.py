from __future__ import annotations

from invite_hub.referrals.constants import (
    QUALIFICATION_FAILED,
    QUALIFICATION_PENDING,
    QUALIFICATION_QUALIFIED,
    REWARD_CAPPED,
    REWARD_CREDITED,
    REWARD_FORFEITED,
    REWARD_PENDING,
)
from invite_hub.referrals.errors import InvalidTransitionError

# Both machines are monotonic: only "pending" has outgoing edges.
QUALIFICATION_TRANSITIONS: dict[str, frozenset[str]] = {
    QUALIFICATION_PENDING: frozenset({QUALIFICATION_QUALIFIED, QUALIFICATION_FAILED}),
    QUALIFICATION_QUALIFIED: frozenset(),
    QUALIFICATION_FAILED: frozenset(),
}
REWARD_TRANSITIONS: dict[str, frozenset[str]] = {
    REWARD_PENDING: frozenset({REWARD_CREDITED, REWARD_FORFEITED, REWARD_CAPPED}),
    REWARD_CREDITED: frozenset(),
    REWARD_FORFEITED: frozenset(),
    REWARD_CAPPED: frozenset(),
}


def is_allowed_qualification_transition(current: str, target: str) -> bool:
    return target in QUALIFICATION_TRANSITIONS.get(current, frozenset())


def is_allowed_reward_transition(current: str, target: str) -> bool:
    return target in REWARD_TRANSITIONS.get(current, frozenset())


def assert_qualification_transition(current: str, target: str) -> None:
    if not is_allowed_qualification_transition(current, target):
        raise InvalidTransitionError(f"qualification_status {current!r} -> {target!r}")


def assert_reward_transition(current: str, target: str) -> None:
    if not is_allowed_reward_transition(current, target):
        raise InvalidTransitionError(f"reward_status {current!r} -> {target!r}")


def is_reward_terminal(status: str) -> bool:
    return not REWARD_TRANSITIONS.get(status, frozenset())
