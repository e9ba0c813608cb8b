import secrets
import time
from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import SESSION_MAX_AGE_SECONDS, SESSION_SECRET
from schemas import SessionCreate

router = APIRouter(tags=["auth"])

serializer = URLSafeTimedSerializer(SESSION_SECRET)

GUEST_PREFIX = "guest_"


def create_session_token(user_id: str, name: str, is_guest: bool = False) -> str:
    """
    Store the caller's identity in the signed token.
    Example data:
        {"user_id": "u-42", "name": "sam@example.org", "is_guest": false}
    """
    return serializer.dumps({"user_id": user_id, "name": name, "is_guest": is_guest})


def verify_session_token(token: str, max_age_seconds: int = SESSION_MAX_AGE_SECONDS):
    """
    Returns the identity dict if valid,
    or None if token is invalid/expired.
    """
    try:
        return serializer.loads(token, max_age=max_age_seconds)
    except BadSignature:
        return None


def get_optional_identity(
    session_token: Optional[str] = Cookie(default=None, alias="session"),
) -> Optional[dict]:
    """
    Returns {"user_id", "name", "is_guest"} for the caller,
    or None if there is no valid session cookie.
    """
    if session_token is None:
        return None
    return verify_session_token(session_token)


OptionalIdentityDep = Annotated[Optional[dict], Depends(get_optional_identity)]


def get_current_identity(identity: OptionalIdentityDep) -> dict:
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail="Please sign in or continue as guest to apply for donations",
        )
    return identity


CurrentIdentityDep = Annotated[dict, Depends(get_current_identity)]


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=SESSION_MAX_AGE_SECONDS,
    )


@router.post("/session")
def start_session(data: SessionCreate, response: Response):
    """
    Bind an already-authenticated user id (from the identity provider
    in front of this service) to a signed session cookie.
    """
    if data.user_id.startswith(GUEST_PREFIX):
        raise HTTPException(status_code=400, detail="Reserved user id prefix")
    name = data.display_name or data.user_id
    _set_session_cookie(response, create_session_token(data.user_id, name))
    return {"user_id": data.user_id, "name": name, "is_guest": False}


@router.post("/session/guest")
def start_guest_session(response: Response):
    """Mint an ephemeral guest identity."""
    user_id = f"{GUEST_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(3)}"
    _set_session_cookie(response, create_session_token(user_id, "Anonymous", is_guest=True))
    return {"user_id": user_id, "name": "Anonymous", "is_guest": True}


@router.delete("/session", status_code=204)
def end_session():
    response = Response(status_code=204)
    response.delete_cookie("session")
    return response


@router.get("/me")
def read_me(current: CurrentIdentityDep):
    return current
