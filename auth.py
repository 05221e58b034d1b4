import logging
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field

import database
from config import settings
from database import collection, create_document, now, serialize, to_object_id
from schemas import Session, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


# Auth models
class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    user_id: str
    name: str
    email: EmailStr
    role: str
    token: str


class Profile(BaseModel):
    id: str
    name: str
    email: EmailStr
    role: str
    phone: Optional[str] = None
    address: Optional[str] = None


def create_token(user_id: str) -> str:
    """Issue an opaque session token and persist it with its expiry."""
    token = f"tok_{secrets.token_urlsafe(32)}"
    session = Session(
        token=token,
        user_id=user_id,
        expires_at=now() + timedelta(hours=settings.token_ttl_hours),
    )
    create_document("session", session)
    return token


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def current_user(authorization: Optional[str] = Header(None)) -> dict:
    token = _bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    session = collection("session").find_one({"token": token})
    if not session:
        raise HTTPException(status_code=401, detail="Invalid token")
    expires_at = session["expires_at"]
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=now().tzinfo)
    if expires_at <= now():
        collection("session").delete_one({"_id": session["_id"]})
        raise HTTPException(status_code=401, detail="Session expired")

    user = collection("user").find_one({"_id": to_object_id(session["user_id"])})
    if not user or not user.get("is_active", True):
        raise HTTPException(status_code=401, detail="User not found")
    user = serialize(user)
    user["token"] = token
    return user


def require_admin(user: dict = Depends(current_user)) -> dict:
    if user.get("role") != "admin":
        logger.warning("User %s denied admin access", user["id"])
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def is_owner_or_admin(user: dict, owner_id: str) -> bool:
    return user.get("role") == "admin" or user["id"] == owner_id


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(payload: SignupRequest):
    email = payload.email.lower()
    if collection("user").find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email already registered")

    user_doc = User(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        phone=payload.phone,
        address=payload.address,
    )
    uid = create_document("user", user_doc)
    logger.info("Registered user %s", uid)
    return AuthResponse(user_id=uid, name=user_doc.name, email=email, role=user_doc.role, token=create_token(uid))


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest):
    user = collection("user").find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        logger.warning("Failed login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account is disabled")
    uid = str(user["_id"])
    return AuthResponse(
        user_id=uid,
        name=user.get("name"),
        email=user.get("email"),
        role=user.get("role", "user"),
        token=create_token(uid),
    )


@router.get("/me", response_model=Profile)
def me(user: dict = Depends(current_user)):
    return Profile(**user)


@router.post("/logout")
def logout(user: dict = Depends(current_user)):
    collection("session").delete_one({"token": user["token"]})
    return {"message": "Logged out"}


def ensure_admin() -> None:
    """Create the configured admin account if it does not exist yet."""
    if not settings.admin_email or not settings.admin_password:
        return
    if database.db is None:
        logger.warning("No database configured; admin account not seeded")
        return
    email = settings.admin_email.lower()
    existing = collection("user").find_one({"email": email})
    if existing:
        if existing.get("role") != "admin":
            collection("user").update_one({"_id": existing["_id"]}, {"$set": {"role": "admin"}})
            logger.info("Promoted %s to admin", email)
        return
    admin = User(
        name=settings.admin_name,
        email=email,
        password_hash=hash_password(settings.admin_password),
        role="admin",
    )
    create_document("user", admin)
    logger.info("Seeded admin account %s", email)
