"""
Firebase Authentication Middleware

Verifies Firebase ID tokens and turns them into rule-engine identities.
Supports demo mode with pseudo-IDs for testing.
"""

from dataclasses import dataclass
from typing import Optional

import firebase_admin
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth

from typetalk.core.config import get_settings
from typetalk.rules.models import Identity


def _ensure_firebase_initialized():
    """Lazy Firebase initialization - only when actually needed for token verification."""
    if not firebase_admin._apps:
        firebase_admin.initialize_app()

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)

DEMO_USER_PREFIX = "demo_"


@dataclass
class FirebaseUser:
    """Represents an authenticated Firebase user."""

    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    email_verified: bool = False
    is_demo: bool = False

    @classmethod
    def from_token(cls, decoded_token: dict) -> "FirebaseUser":
        """Create FirebaseUser from decoded Firebase ID token."""
        return cls(
            uid=decoded_token["uid"],
            email=decoded_token.get("email"),
            name=decoded_token.get("name"),
            email_verified=decoded_token.get("email_verified", False),
            is_demo=False,
        )

    @classmethod
    def demo_user(cls, demo_id: str) -> "FirebaseUser":
        """Create a demo user with pseudo-ID."""
        return cls(
            uid=f"{DEMO_USER_PREFIX}{demo_id}",
            email=f"{demo_id}@demo.typetalk.local",
            name=f"Demo User ({demo_id})",
            email_verified=False,
            is_demo=True,
        )

    def to_identity(self) -> Identity:
        return Identity.signed_in(self.uid)


def _verify_token(token: str) -> FirebaseUser:
    _ensure_firebase_initialized()
    decoded_token = auth.verify_id_token(token)
    return FirebaseUser.from_token(decoded_token)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_demo_user_id: Optional[str] = Header(None, alias="X-Demo-User-Id"),
) -> FirebaseUser:
    """
    Dependency that verifies Firebase ID token and returns the current user.
    Supports demo mode with X-Demo-User-Id header.

    Demo mode:
        Send header: X-Demo-User-Id: my-demo-session
        Returns demo user with uid: demo_my-demo-session
    """
    if get_settings().demo_mode and x_demo_user_id:
        return FirebaseUser.demo_user(x_demo_user_id)

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return _verify_token(credentials.credentials)
    except auth.ExpiredIdTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except auth.InvalidIdTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_demo_user_id: Optional[str] = Header(None, alias="X-Demo-User-Id"),
) -> Identity:
    """
    Dependency that resolves the requester identity for the rule engine.

    Never rejects the request: a missing token gives an anonymous identity, so
    the rule set (not the transport) decides what anonymous callers may do.
    A token that is present but invalid is still a 401.
    """
    if get_settings().demo_mode and x_demo_user_id:
        return FirebaseUser.demo_user(x_demo_user_id).to_identity()

    if credentials is None:
        return Identity.anonymous()

    user = await get_current_user(credentials=credentials, x_demo_user_id=None)
    return user.to_identity()
