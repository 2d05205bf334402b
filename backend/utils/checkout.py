from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, Field


class CheckoutStep(IntEnum):
    SELECTION = 0
    CONDITION_CHECK = 1
    AGREEMENT = 2
    SUCCESS = 3


class CheckoutStepError(Exception):
    pass


class Agreement(BaseModel):
    terms_accepted: bool = False
    id_image: Optional[str] = None
    live_photo: Optional[str] = None
    signature: str = ""

    @property
    def complete(self) -> bool:
        return bool(
            self.terms_accepted
            and self.id_image
            and self.live_photo
            and self.signature.strip()
        )


class CheckoutFlow(BaseModel):
    id: str
    user_email: str
    product_id: str
    plan: Optional[str] = None
    step: CheckoutStep = CheckoutStep.SELECTION
    condition_report: Optional[str] = None
    agreement: Agreement = Field(default_factory=Agreement)
    order_id: Optional[str] = None

    # -------------------------
    # SELECTION
    # -------------------------

    def select_plan(self, plan: str) -> None:
        self._require(CheckoutStep.SELECTION)
        self.plan = plan

    def begin(self) -> None:
        self._require(CheckoutStep.SELECTION)
        if not self.plan:
            raise CheckoutStepError("Choose a rental plan first")
        self.step = CheckoutStep.CONDITION_CHECK

    # -------------------------
    # CONDITION CHECK
    # -------------------------

    def record_condition_report(self, report: str) -> None:
        self._require(CheckoutStep.CONDITION_CHECK)
        if self.condition_report:
            raise CheckoutStepError("Condition report already generated")
        if not report or not report.strip():
            raise CheckoutStepError("Condition report is empty")
        self.condition_report = report

    def confirm_condition(self) -> None:
        self._require(CheckoutStep.CONDITION_CHECK)
        if not self.condition_report:
            raise CheckoutStepError("Run the condition check before confirming")
        self.step = CheckoutStep.AGREEMENT

    # -------------------------
    # AGREEMENT
    # -------------------------

    def update_agreement(
        self,
        *,
        terms_accepted: Optional[bool] = None,
        signature: Optional[str] = None,
        id_image: Optional[str] = None,
        live_photo: Optional[str] = None,
        clear_id_image: bool = False,
        clear_live_photo: bool = False,
    ) -> None:
        self._require(CheckoutStep.AGREEMENT)

        if terms_accepted is not None:
            self.agreement.terms_accepted = terms_accepted
        if signature is not None:
            self.agreement.signature = signature
        if id_image is not None:
            self.agreement.id_image = id_image
        if live_photo is not None:
            self.agreement.live_photo = live_photo
        if clear_id_image:
            self.agreement.id_image = None
        if clear_live_photo:
            self.agreement.live_photo = None

    @property
    def awaiting_condition_report(self) -> bool:
        return self.step == CheckoutStep.CONDITION_CHECK and not self.condition_report

    @property
    def can_accept_agreement_changes(self) -> bool:
        return self.step == CheckoutStep.AGREEMENT

    @property
    def can_complete(self) -> bool:
        return self.step == CheckoutStep.AGREEMENT and self.agreement.complete

    def complete(self, order_id: str) -> None:
        self._require(CheckoutStep.AGREEMENT)
        if not self.agreement.complete:
            raise CheckoutStepError(
                "Accept the terms, attach your ID and live photo, and sign to continue"
            )
        self.order_id = order_id
        self.step = CheckoutStep.SUCCESS

    def _require(self, step: CheckoutStep) -> None:
        if self.step != step:
            raise CheckoutStepError(
                f"Checkout is at '{self.step.name.lower()}', expected '{step.name.lower()}'"
            )

    def summary(self) -> dict:
        return {
            "checkout_id": self.id,
            "product_id": self.product_id,
            "plan": self.plan,
            "step": self.step.name.lower(),
            "step_index": int(self.step),
            "condition_report": self.condition_report,
            "agreement": {
                "terms_accepted": self.agreement.terms_accepted,
                "id_image_attached": bool(self.agreement.id_image),
                "live_photo_attached": bool(self.agreement.live_photo),
                "signature": self.agreement.signature,
            },
            "can_complete": self.can_complete,
            "order_id": self.order_id,
        }
