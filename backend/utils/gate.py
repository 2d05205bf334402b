from enum import Enum
from typing import Optional

from pydantic import BaseModel


class GateState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    KYC_VERIFIED = "kyc_verified"


class GateOutcome(str, Enum):
    LOGIN_REQUIRED = "login_required"
    KYC_REQUIRED = "kyc_required"
    PROCEED = "proceed"


class PendingActionKind(str, Enum):
    # re-run the whole Rent Now gate (captured while anonymous)
    RENT_NOW = "rent_now"
    # resume straight at the condition check (captured while awaiting KYC)
    START_CHECKOUT = "start_checkout"


class PendingAction(BaseModel):
    kind: PendingActionKind
    product_id: str
    plan: str


def gate_state_for(user: Optional[dict]) -> GateState:
    if not user:
        return GateState.ANONYMOUS
    if user.get("kyc_verified"):
        return GateState.KYC_VERIFIED
    return GateState.AUTHENTICATED


def may_checkout(user: Optional[dict]) -> bool:
    # admins skip KYC
    if not user:
        return False
    return gate_state_for(user) == GateState.KYC_VERIFIED or bool(user.get("is_admin"))


class VerificationGate:
    """
    Single-slot holder for the action a gate interrupted.

    Only one pending action exists per client session; a newer interruption
    replaces the older one. Taking the action on a success path clears the
    slot, so the caller dispatches it exactly once.
    """

    def __init__(self, pending: Optional[PendingAction] = None):
        self.pending = pending

    def request_rent(self, user: Optional[dict], product_id: str, plan: str) -> GateOutcome:
        state = gate_state_for(user)

        if state == GateState.ANONYMOUS:
            self.pending = PendingAction(
                kind=PendingActionKind.RENT_NOW,
                product_id=product_id,
                plan=plan,
            )
            return GateOutcome.LOGIN_REQUIRED

        if not may_checkout(user):
            self.pending = PendingAction(
                kind=PendingActionKind.START_CHECKOUT,
                product_id=product_id,
                plan=plan,
            )
            return GateOutcome.KYC_REQUIRED

        # proceeding supersedes anything still deferred
        self.pending = None
        return GateOutcome.PROCEED

    def login_succeeded(self) -> Optional[PendingAction]:
        return self._take()

    def kyc_succeeded(self) -> Optional[PendingAction]:
        return self._take()

    def abandon(self) -> None:
        self.pending = None

    def logout(self) -> None:
        self.pending = None

    def _take(self) -> Optional[PendingAction]:
        action, self.pending = self.pending, None
        return action
