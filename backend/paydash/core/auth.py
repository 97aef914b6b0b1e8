# core/auth.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth
from starlette.concurrency import run_in_threadpool
from typing import Optional
import logging

from paydash.models.user_model import User
from paydash.core.config import settings
from paydash.core.firebase import get_db

logger = logging.getLogger("paydash")
bearer_scheme = HTTPBearer(auto_error=False)

DEMO_USER = User(_id="demo", email="demo@paydash.local", display_name="Demo")


def _load_or_create_user(uid: str, decoded: dict) -> User:
    ref = get_db().collection(settings.USERS_COLLECTION).document(uid)
    user_doc = ref.get(timeout=settings.STORE_TIMEOUT_SECONDS)
    if user_doc.exists:
        return User(**{**user_doc.to_dict(), "_id": uid})

    new_user = User(
        _id=uid,
        firebase_uid=uid,
        email=decoded.get("email", ""),
        display_name=decoded.get("name") or decoded.get("email", "").split("@")[0],
    )
    ref.set(new_user.model_dump(exclude={"id"}))
    return new_user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> User:
    """
    Returns the currently authenticated user.
    Raises 401 if token is missing or invalid, 403 if the account is disabled.
    Auto-creates the user document in Firestore if it does not exist.
    """
    if settings.AUTH_DISABLED:
        return DEMO_USER

    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    try:
        decoded = await run_in_threadpool(auth.verify_id_token, credentials.credentials)
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication token")

    uid = decoded.get("uid")
    if not uid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    try:
        user = await run_in_threadpool(_load_or_create_user, uid, decoded)
    except Exception as e:
        logger.error(f"Failed to load user {uid}: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="User store unavailable")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return user
