import logging
import uuid
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .errors import Unauthorized
from .models import User
from .security_utils import verify_access_token

logger = logging.getLogger(__name__)

# auto_error=False so a missing header becomes our 401 body instead of FastAPI's 403
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to a known user"""

    if not credentials or not credentials.credentials:
        logger.warning("❌ No credentials provided")
        raise Unauthorized(
            "not_authenticated",
            "Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials

    # Basic token format validation before processing
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received: token length {len(token)}")
        raise Unauthorized("invalid_token", "Invalid token format. Expected a valid JWT token.")

    payload = verify_access_token(token)
    if payload is None:
        raise Unauthorized("invalid_token", "Invalid or expired token")

    subject = payload.get("sub")
    try:
        user_id = uuid.UUID(str(subject))
    except (ValueError, TypeError) as e:
        logger.warning(f"❌ Token subject is not a user id: {subject!r}")
        raise Unauthorized("invalid_token", "Invalid token claims") from e

    user = db.get(User, user_id)
    if not user:
        logger.warning(f"❌ Token subject {user_id} does not match any user")
        raise Unauthorized("unknown_user", "Authentication failed")

    logger.debug(f"✅ User authenticated: {user.username}")
    return user
