import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile

from utils.auth_service import public_user
from utils.crypto import encrypt_sensitive_value
from utils.deps import get_analyzer, get_image_uploader, get_stores
from utils.gemini import AnalyzerError
from utils.images import read_image, store_image
from utils.kyc import (
    KYC_MESSAGES,
    KycStep,
    KycStepError,
    current_step,
    require_step,
    step_after_id_document,
    step_after_live_id,
)
from utils.rentals import load_gate, save_gate, dispatch_pending
from utils.security import get_current_user

router = APIRouter(prefix="/kyc", tags=["KYC"])

logger = logging.getLogger(__name__)


def _require(user: dict, *steps: KycStep) -> None:
    try:
        require_step(user, *steps)
    except KycStepError as e:
        raise HTTPException(409, str(e))


@router.get("/status")
async def kyc_status(user=Depends(get_current_user)):
    kyc = user.get("kyc") or {}
    return {
        "step": current_step(user).value,
        "confidence": kyc.get("confidence"),
        "kyc_verified": bool(user.get("kyc_verified")),
    }


# =========================
# STEP 1: ID DOCUMENT
# =========================

@router.post("/id-document")
async def submit_id_document(
    file: UploadFile = File(...),
    user=Depends(get_current_user),
    stores=Depends(get_stores),
    analyzer=Depends(get_analyzer),
    uploader=Depends(get_image_uploader),
):
    _require(user, KycStep.UPLOAD_ID, KycStep.CAPTURE_LIVE_ID)

    image, mime_type = await read_image(file)
    try:
        confidence = await analyzer.verify_id_document(image, mime_type)
    except AnalyzerError as e:
        raise HTTPException(502, str(e))

    step = step_after_id_document(confidence)
    kyc = {"step": step.value, "confidence": confidence.value}

    if step != KycStep.UPLOAD_ID:
        url = await store_image(uploader, image, f"dozo/kyc/{user['email']}")
        kyc["id_document"] = encrypt_sensitive_value(url)

    await stores.users.update(user["email"], {"kyc": kyc})
    logger.info("KYC_ID_CHECKED email=%s confidence=%s", user["email"], confidence.value)

    return {
        "confidence": confidence.value,
        "step": step.value,
        "message": KYC_MESSAGES[confidence],
    }


# =========================
# STEP 1b: LIVE ID PHOTO (medium confidence only)
# =========================

@router.post("/live-id-photo")
async def submit_live_id_photo(
    file: UploadFile = File(...),
    user=Depends(get_current_user),
    stores=Depends(get_stores),
    analyzer=Depends(get_analyzer),
):
    _require(user, KycStep.CAPTURE_LIVE_ID)

    image, mime_type = await read_image(file)
    try:
        is_valid = await analyzer.verify_live_id_photo(image, mime_type)
    except AnalyzerError as e:
        raise HTTPException(502, str(e))

    step = step_after_live_id(is_valid)
    if is_valid:
        kyc = {**(user.get("kyc") or {}), "step": step.value}
        message = "Live ID photo verified. Please take a photo of yourself."
    else:
        kyc = {"step": step.value}
        message = "Could not verify live ID photo. Please try again, or upload a different ID document."

    await stores.users.update(user["email"], {"kyc": kyc})
    return {"step": step.value, "verified": is_valid, "message": message}


# =========================
# STEP 2: FACE PHOTO (completes KYC)
# =========================

@router.post("/face-photo")
async def submit_face_photo(
    file: UploadFile = File(...),
    x_client_id: Optional[str] = Header(None),
    user=Depends(get_current_user),
    stores=Depends(get_stores),
    uploader=Depends(get_image_uploader),
):
    _require(user, KycStep.CAPTURE_FACE)

    image, _ = await read_image(file)
    url = await store_image(uploader, image, f"dozo/kyc/{user['email']}")

    kyc = {
        **(user.get("kyc") or {}),
        "step": KycStep.VERIFIED.value,
        "face_photo": encrypt_sensitive_value(url),
        "verified_at": datetime.utcnow(),
    }
    await stores.users.update(user["email"], {"kyc": kyc, "kyc_verified": True})
    user = {**user, "kyc": kyc, "kyc_verified": True}
    logger.info("KYC_VERIFIED email=%s", user["email"])

    resumed = None
    if x_client_id:
        gate = await load_gate(stores, x_client_id, user)
        action = gate.kyc_succeeded()
        await save_gate(stores, x_client_id, gate, user)
        resumed = await dispatch_pending(stores, x_client_id, user, action)

    return {
        "message": "Verification complete. You can now rent items.",
        "user": public_user(user),
        "resumed": resumed,
    }


@router.post("/reset")
async def reset_kyc(
    user=Depends(get_current_user),
    stores=Depends(get_stores),
):
    _require(user, KycStep.UPLOAD_ID, KycStep.CAPTURE_LIVE_ID, KycStep.CAPTURE_FACE)
    await stores.users.update(user["email"], {"kyc": {"step": KycStep.UPLOAD_ID.value}})
    return {"step": KycStep.UPLOAD_ID.value}
