from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel
from typing import Optional

from utils.checkout import CheckoutStepError
from utils.crypto import encrypt_sensitive_value
from utils.deps import get_analyzer, get_client_id, get_image_uploader, get_stores
from utils.gemini import AnalyzerError
from utils.images import read_image, store_image
from utils.orders import serialize_order
from utils.rentals import (
    rent_now,
    load_gate,
    save_gate,
    load_checkout,
    save_checkout,
    complete_checkout,
    VerificationRequiredError,
)
from utils.security import get_current_user, get_optional_user

router = APIRouter(prefix="/rentals", tags=["Rentals"])


# =========================
# SCHEMAS
# =========================

class RentNowRequest(BaseModel):
    product_id: str
    plan: str  # daily | 3 | 6 | 12


class AgreementUpdate(BaseModel):
    terms_accepted: Optional[bool] = None
    signature: Optional[str] = None
    clear_id_image: bool = False
    clear_live_photo: bool = False


async def _checkout_or_404(stores, checkout_id: str, user: dict):
    try:
        return await load_checkout(stores, checkout_id, user)
    except LookupError:
        raise HTTPException(404, "Checkout not found")


# =========================
# RENT NOW (GATED)
# =========================

@router.post("/rent-now")
async def rent_now_route(
    data: RentNowRequest,
    client_id: str = Depends(get_client_id),
    user=Depends(get_optional_user),
    stores=Depends(get_stores),
):
    try:
        return await rent_now(stores, client_id, user, data.product_id, data.plan)
    except LookupError:
        raise HTTPException(404, "Product not found")
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/pending")
async def pending_action(
    client_id: str = Depends(get_client_id),
    user=Depends(get_optional_user),
    stores=Depends(get_stores),
):
    gate = await load_gate(stores, client_id, user)
    return {"pending_action": gate.pending.model_dump(mode="json") if gate.pending else None}


@router.delete("/pending")
async def abandon_pending_action(
    client_id: str = Depends(get_client_id),
    user=Depends(get_optional_user),
    stores=Depends(get_stores),
):
    # the login or KYC prompt was dismissed without finishing
    gate = await load_gate(stores, client_id, user)
    gate.abandon()
    await save_gate(stores, client_id, gate, user)
    return {"message": "Pending action cleared"}


# =========================
# CHECKOUT FLOW
# =========================

@router.get("/checkouts/{checkout_id}")
async def get_checkout(
    checkout_id: str,
    user=Depends(get_current_user),
    stores=Depends(get_stores),
):
    flow = await _checkout_or_404(stores, checkout_id, user)
    return flow.summary()


@router.post("/checkouts/{checkout_id}/condition-report")
async def condition_report(
    checkout_id: str,
    file: UploadFile = File(...),
    user=Depends(get_current_user),
    stores=Depends(get_stores),
    analyzer=Depends(get_analyzer),
):
    flow = await _checkout_or_404(stores, checkout_id, user)
    product = await stores.products.get(flow.product_id)
    if not product:
        raise HTTPException(404, "Product not found")

    if not flow.awaiting_condition_report:
        raise HTTPException(409, "Condition report already generated or checkout not at condition check")

    image, mime_type = await read_image(file)

    try:
        report = await analyzer.analyze_condition(image, mime_type, product["name"])
        flow.record_condition_report(report)
    except CheckoutStepError as e:
        raise HTTPException(409, str(e))
    except AnalyzerError as e:
        raise HTTPException(502, str(e))

    await save_checkout(stores, flow)
    return flow.summary()


@router.post("/checkouts/{checkout_id}/confirm-condition")
async def confirm_condition(
    checkout_id: str,
    user=Depends(get_current_user),
    stores=Depends(get_stores),
):
    flow = await _checkout_or_404(stores, checkout_id, user)
    try:
        flow.confirm_condition()
    except CheckoutStepError as e:
        raise HTTPException(409, str(e))

    await save_checkout(stores, flow)
    return flow.summary()


@router.patch("/checkouts/{checkout_id}/agreement")
async def update_agreement(
    checkout_id: str,
    data: AgreementUpdate,
    user=Depends(get_current_user),
    stores=Depends(get_stores),
):
    flow = await _checkout_or_404(stores, checkout_id, user)
    try:
        flow.update_agreement(
            terms_accepted=data.terms_accepted,
            signature=data.signature,
            clear_id_image=data.clear_id_image,
            clear_live_photo=data.clear_live_photo,
        )
    except CheckoutStepError as e:
        raise HTTPException(409, str(e))

    await save_checkout(stores, flow)
    return flow.summary()


async def _attach_agreement_image(checkout_id, file, field, user, stores, uploader):
    flow = await _checkout_or_404(stores, checkout_id, user)
    if not flow.can_accept_agreement_changes:
        raise HTTPException(409, "Checkout is not at the agreement step")

    image, _ = await read_image(file)
    url = await store_image(uploader, image, f"dozo/agreements/{flow.id}")

    flow.update_agreement(**{field: encrypt_sensitive_value(url)})
    await save_checkout(stores, flow)
    return flow.summary()


@router.post("/checkouts/{checkout_id}/agreement/id-image")
async def attach_id_image(
    checkout_id: str,
    file: UploadFile = File(...),
    user=Depends(get_current_user),
    stores=Depends(get_stores),
    uploader=Depends(get_image_uploader),
):
    return await _attach_agreement_image(checkout_id, file, "id_image", user, stores, uploader)


@router.post("/checkouts/{checkout_id}/agreement/live-photo")
async def attach_live_photo(
    checkout_id: str,
    file: UploadFile = File(...),
    user=Depends(get_current_user),
    stores=Depends(get_stores),
    uploader=Depends(get_image_uploader),
):
    return await _attach_agreement_image(checkout_id, file, "live_photo", user, stores, uploader)


@router.post("/checkouts/{checkout_id}/complete")
async def complete(
    checkout_id: str,
    user=Depends(get_current_user),
    stores=Depends(get_stores),
):
    flow = await _checkout_or_404(stores, checkout_id, user)
    try:
        order = await complete_checkout(stores, flow, user)
    except VerificationRequiredError as e:
        raise HTTPException(403, str(e))
    except CheckoutStepError as e:
        raise HTTPException(409, str(e))
    except LookupError:
        raise HTTPException(404, "Product not found")

    return {
        "message": "Rental confirmed! Our team will be in touch shortly regarding delivery.",
        "checkout": flow.summary(),
        "order": serialize_order(order),
    }


@router.delete("/checkouts/{checkout_id}")
async def abandon_checkout(
    checkout_id: str,
    user=Depends(get_current_user),
    stores=Depends(get_stores),
):
    flow = await _checkout_or_404(stores, checkout_id, user)
    await stores.checkouts.delete(flow.id)
    return {"message": "Checkout abandoned"}
