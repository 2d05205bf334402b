from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from utils import auth_service
from utils.auth_service import public_user
from utils.deps import get_stores
from utils.jwt import create_access_token
from utils.rate_limiter import check_login_attempt, clear_login_attempts
from utils.rentals import load_gate, save_gate, dispatch_pending
from utils.security import get_current_user

router = APIRouter(prefix="/auth", tags=["Auth"])

# ======================
# Schemas
# ======================

class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)

# ======================
# Sign up
# ======================

@router.post("/signup")
async def sign_up(data: SignUpRequest, stores=Depends(get_stores)):
    result = await auth_service.sign_up(stores.users, data.email, data.password)
    if not result.success:
        raise HTTPException(400, result.message)

    # no mail provider: the verification token goes back to the client
    return {
        "message": result.message,
        "verification_token": result.verification_token,
    }


@router.post("/verify-email")
async def verify_email(data: VerifyEmailRequest, stores=Depends(get_stores)):
    result = await auth_service.verify_email(stores.users, data.token)
    if not result.success:
        raise HTTPException(400, result.message)
    return {"message": result.message}

# ======================
# Login (resumes any pending action)
# ======================

@router.post("/login")
async def login(
    data: LoginRequest,
    x_client_id: Optional[str] = Header(None),
    stores=Depends(get_stores),
):
    check_login_attempt(data.email)

    result = await auth_service.login(stores.users, data.email, data.password)
    if not result.success:
        raise HTTPException(401, result.message)
    clear_login_attempts(data.email)

    user = result.user
    token = create_access_token(user["email"], result.session_id, bool(user.get("is_admin")))

    resumed = None
    if x_client_id:
        gate = await load_gate(stores, x_client_id, user)
        action = gate.login_succeeded()
        await save_gate(stores, x_client_id, gate, user)
        resumed = await dispatch_pending(stores, x_client_id, user, action)

    return {
        "message": result.message,
        "access_token": token,
        "token_type": "bearer",
        "user": public_user(user),
        "resumed": resumed,
    }

# ======================
# Logout
# ======================

@router.post("/logout")
async def logout(
    x_client_id: Optional[str] = Header(None),
    user=Depends(get_current_user),
    stores=Depends(get_stores),
):
    await auth_service.logout(stores.users, user["email"], user["session_id"])

    if x_client_id:
        gate = await load_gate(stores, x_client_id, user)
        gate.logout()
        await save_gate(stores, x_client_id, gate, user)

    return {"message": "Logged out"}

# ======================
# Current User
# ======================

@router.get("/me")
async def me(user=Depends(get_current_user)):
    return public_user(user)
