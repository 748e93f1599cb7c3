"""
Property Document Tracker - Auth Router

Token issue and the bearer-token dependency that guards status writes.
"""

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from datetime import datetime, timezone
from typing import Optional
import jwt as pyjwt

from services.tracker_config import (
    JWT_SECRET, JWT_ALGORITHM, JWT_TTL_SECONDS, ADMIN_USERNAME, ADMIN_PASSWORD
)

router = APIRouter(prefix="/auth", tags=["auth"])

bearer_scheme = HTTPBearer(auto_error=False)

OPERATOR = {
    "username": ADMIN_USERNAME,
    "display_name": "Portfolio Administrator",
    "role": "administrator",
}


class LoginRequest(BaseModel):
    username: str
    password: str


def create_token(username: str) -> str:
    payload = {"sub": username, "exp": datetime.now(timezone.utc).timestamp() + JWT_TTL_SECONDS}
    return pyjwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    return pyjwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """Reject the request before it reaches the tracker when no valid token is sent."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required. Please log in and try again.")
    try:
        payload = decode_token(credentials.credentials)
    except pyjwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return {"username": payload.get("sub")}


@router.post("/login")
async def login(req: LoginRequest):
    """Authenticate and return a JWT."""
    if req.username == ADMIN_USERNAME and req.password == ADMIN_PASSWORD:
        return {"token": create_token(req.username), "user": OPERATOR}
    raise HTTPException(status_code=401, detail="Invalid credentials")


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Current user from the bearer token."""
    return {**OPERATOR, "username": user["username"]}
