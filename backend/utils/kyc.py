from enum import Enum


class IdConfidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class KycStep(str, Enum):
    UPLOAD_ID = "upload_id"
    CAPTURE_LIVE_ID = "capture_live_id"
    CAPTURE_FACE = "capture_face"
    VERIFIED = "verified"


class KycStepError(Exception):
    pass


KYC_MESSAGES = {
    IdConfidence.HIGH: "ID appears valid. Please proceed to the live photo.",
    IdConfidence.MEDIUM: "We need a clearer picture. Please take a live photo of your ID document to continue.",
    IdConfidence.LOW: "Could not verify. Please upload a high-quality image of a valid ID.",
}


def current_step(user: dict) -> KycStep:
    if user.get("kyc_verified"):
        return KycStep.VERIFIED
    return KycStep((user.get("kyc") or {}).get("step", KycStep.UPLOAD_ID.value))


def step_after_id_document(confidence: IdConfidence) -> KycStep:
    if confidence == IdConfidence.HIGH:
        return KycStep.CAPTURE_FACE
    if confidence == IdConfidence.MEDIUM:
        return KycStep.CAPTURE_LIVE_ID
    # low confidence blocks progress until a better document is uploaded
    return KycStep.UPLOAD_ID


def step_after_live_id(is_valid: bool) -> KycStep:
    return KycStep.CAPTURE_FACE if is_valid else KycStep.UPLOAD_ID


def require_step(user: dict, *allowed: KycStep) -> KycStep:
    step = current_step(user)
    if step not in allowed:
        raise KycStepError(f"KYC is at '{step.value}'")
    return step
