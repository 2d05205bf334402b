import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import uuid4

from config.env import ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_NAME, MAX_SESSIONS
from utils.passwords import hash_password, verify_password, password_problem
from utils.stores import UserStore

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    success: bool
    message: str
    user: Optional[dict] = None
    session_id: Optional[str] = None
    verification_token: Optional[str] = None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def name_from_email(email: str) -> str:
    local = email.split("@")[0]
    spaced = re.sub(r"[^a-zA-Z0-9]", " ", local)
    return re.sub(r"\b\w", lambda m: m.group().upper(), spaced).strip()


def public_user(user: dict) -> dict:
    return {
        "name": user.get("name"),
        "email": user["email"],
        "email_verified": bool(user.get("email_verified")),
        "kyc_verified": bool(user.get("kyc_verified")),
        "is_admin": bool(user.get("is_admin")),
    }


def _is_super_admin(email: str) -> bool:
    return bool(ADMIN_EMAIL) and email == ADMIN_EMAIL


def new_user_doc(email: str, password: str, **overrides) -> dict:
    doc = {
        "email": email,
        "name": name_from_email(email),
        "password_hash": hash_password(password),
        "email_verified": False,
        "kyc_verified": False,
        "is_admin": False,
        "sessions": [],
        "verification_token": None,
        "kyc": {"step": "upload_id"},
        "created_at": datetime.utcnow(),
    }
    doc.update(overrides)
    return doc


# ======================
# Sign up / verify
# ======================

async def sign_up(users: UserStore, email: str, password: str) -> AuthResult:
    email = normalize_email(email)

    if _is_super_admin(email):
        return AuthResult(False, "This email is reserved for administration.")

    existing = await users.get(email)
    if existing:
        if not existing.get("email_verified") and existing.get("verification_token"):
            return AuthResult(
                True,
                "This email is already pending verification. We've resent the verification link.",
                verification_token=existing["verification_token"],
            )
        return AuthResult(False, "An account with this email already exists.")

    problem = password_problem(password)
    if problem:
        return AuthResult(False, problem)

    token = f"dozo_verify_{secrets.token_urlsafe(24)}"
    await users.insert(new_user_doc(email, password, verification_token=token))
    logger.info("USER_SIGNED_UP email=%s", email)

    return AuthResult(
        True,
        "Account created! Please check your email to verify your account.",
        verification_token=token,
    )


async def verify_email(users: UserStore, token: str) -> AuthResult:
    user = await users.get_by_verification_token(token)
    if not user:
        return AuthResult(False, "Invalid or expired verification token.")

    await users.update(user["email"], {"email_verified": True, "verification_token": None})
    return AuthResult(True, "Email verified successfully! You can now log in.")


# ======================
# Login / logout
# ======================

async def _ensure_super_admin(users: UserStore, email: str, password: str) -> dict:
    user = await users.get(email)
    if not user:
        user = new_user_doc(
            email,
            password,
            name=ADMIN_NAME,
            email_verified=True,
            kyc_verified=True,
            is_admin=True,
        )
        await users.insert(user)
    return user


async def login(users: UserStore, email: str, password: str) -> AuthResult:
    email = normalize_email(email)
    session_id = f"sess_{uuid4().hex}"

    if _is_super_admin(email) and ADMIN_PASSWORD and secrets.compare_digest(password, ADMIN_PASSWORD):
        admin = await _ensure_super_admin(users, email, password)
        await users.add_session(email, session_id, limit=None)
        return AuthResult(True, "Admin login successful.", user=admin, session_id=session_id)

    user = await users.get(email)
    if not user or not verify_password(password, user.get("password_hash", "")):
        return AuthResult(False, "Invalid email or password.")

    if not user.get("email_verified"):
        return AuthResult(
            False,
            "Your email is not verified. Please check your inbox for the verification link.",
        )

    limit = None if user.get("is_admin") else MAX_SESSIONS
    if not await users.add_session(email, session_id, limit=limit):
        logger.info("DEVICE_LIMIT_REACHED email=%s", email)
        return AuthResult(
            False,
            f"Device limit of {MAX_SESSIONS} reached. Please log out from another device.",
        )

    return AuthResult(True, "Login successful.", user=user, session_id=session_id)


async def logout(users: UserStore, email: str, session_id: str) -> bool:
    return await users.remove_session(email, session_id)


async def create_admin(users: UserStore, email: str, password: str, creator: dict) -> AuthResult:
    if not creator.get("is_admin"):
        return AuthResult(False, "Unauthorized: Only admins can create new admins.")

    email = normalize_email(email)
    if await users.get(email):
        return AuthResult(False, "An account with this email already exists.")

    problem = password_problem(password)
    if problem:
        return AuthResult(False, problem)

    await users.insert(
        new_user_doc(
            email,
            password,
            name=email.split("@")[0],
            email_verified=True,
            kyc_verified=True,
            is_admin=True,
        )
    )
    logger.info("ADMIN_CREATED email=%s by=%s", email, creator["email"])
    return AuthResult(True, "Admin account created successfully.")
