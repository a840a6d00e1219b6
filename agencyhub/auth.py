import base64
import json
import logging
import time
from typing import Optional

import httpx
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509 import load_pem_x509_certificate
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import FIREBASE_PROJECT_ID
from .database import get_db
from .errors import AuthenticationError, AuthorizationError, ConflictError
from .models import Order, User
from .shared.enums import UserRole

logger = logging.getLogger(__name__)

GOOGLE_CERTS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)

security = HTTPBearer(auto_error=False)

# Cache for Google's public keys
_cached_keys: Optional[dict] = None


def _b64decode(segment: str) -> bytes:
    padding_needed = -len(segment) % 4
    return base64.urlsafe_b64decode(segment + "=" * padding_needed)


async def get_google_public_keys(force_refresh: bool = False) -> Optional[dict]:
    """Fetch Google's public keys for Firebase token verification"""
    global _cached_keys
    if _cached_keys and not force_refresh:
        return _cached_keys

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(GOOGLE_CERTS_URL)
        if response.status_code == 200:
            _cached_keys = response.json()
            logger.info(f"✅ Fetched {len(_cached_keys)} Google public keys")
            return _cached_keys
        logger.error(f"❌ Failed to fetch Google public keys: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Error fetching Google public keys: {str(e)}")
    return None


async def verify_firebase_token(token: str) -> dict:
    """
    Verify a Firebase ID token with full RS256 signature verification
    against Google's published certificates, then check aud/iss/exp/iat.
    """
    if not FIREBASE_PROJECT_ID:
        logger.error("❌ FIREBASE_PROJECT_ID not configured")
        raise AuthenticationError("Authentication is not configured")

    parts = token.split(".")
    if len(parts) != 3:
        raise AuthenticationError("Invalid token format")
    header_b64, payload_b64, signature_b64 = parts

    try:
        header = json.loads(_b64decode(header_b64))
        claims = json.loads(_b64decode(payload_b64))
        signature = _b64decode(signature_b64)
    except ValueError as e:
        raise AuthenticationError("Malformed token") from e

    kid = header.get("kid")
    if header.get("alg") != "RS256" or not kid:
        raise AuthenticationError("Invalid token header")

    public_keys = await get_google_public_keys()
    if not public_keys or kid not in public_keys:
        logger.warning(f"⚠️ Key ID {kid} not found in public keys, refreshing")
        public_keys = await get_google_public_keys(force_refresh=True)
        if not public_keys or kid not in public_keys:
            raise AuthenticationError("Unable to verify token signature")

    cert = load_pem_x509_certificate(public_keys[kid].encode())
    try:
        cert.public_key().verify(
            signature, f"{header_b64}.{payload_b64}".encode(), padding.PKCS1v15(), hashes.SHA256()
        )
    except InvalidSignature as e:
        logger.warning("❌ Token signature verification failed")
        raise AuthenticationError("Invalid token signature") from e

    if claims.get("aud") != FIREBASE_PROJECT_ID:
        raise AuthenticationError("Invalid token audience")
    if claims.get("iss") != f"https://securetoken.google.com/{FIREBASE_PROJECT_ID}":
        raise AuthenticationError("Invalid token issuer")

    now = time.time()
    if claims.get("exp", 0) < now:
        raise AuthenticationError("Token has expired. Please refresh your session.")
    if claims.get("iat", 0) > now + 60:  # Allow 60 seconds clock skew
        raise AuthenticationError("Invalid token")

    return claims


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated user from the bearer token, creating it on first sight"""
    if not credentials:
        raise AuthenticationError(
            "Not authenticated. Please provide a valid Bearer token in the Authorization header."
        )

    claims = await verify_firebase_token(credentials.credentials)
    uid = claims.get("sub") or claims.get("user_id")
    if not uid:
        raise AuthenticationError("Invalid token claims")

    user = db.query(User).filter(User.firebase_uid == uid).first()
    if user:
        return user

    email = claims.get("email") or ""
    logger.info(f"🆕 Creating new user: {email}")
    user = User(firebase_uid=uid, email=email, full_name=claims.get("name"), role=UserRole.CLIENT)
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except IntegrityError as e:
        db.rollback()
        logger.error(f"❌ Email {email} already registered under another identity")
        raise ConflictError("This email is already registered with another account") from e
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ADMIN:
        logger.warning(f"⚠️ User {user.id} attempted an admin-only action")
        raise AuthorizationError("Admin access required")
    return user


async def require_client(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.CLIENT:
        raise AuthorizationError("Only client accounts can perform this action")
    return user


def assert_can_view_order(order: Order, user: User) -> None:
    """Admins see every order; clients only their own"""
    if user.role == UserRole.ADMIN:
        return
    if user.client_id is None or order.client_id != user.client_id:
        raise AuthorizationError("You do not have access to this order")
