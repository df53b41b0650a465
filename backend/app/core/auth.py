"""
OAuth state (CSRF) handling for the marketplace authorization flow

The authorize endpoint issues a signed JWT carrying a random jti; the jti is
also recorded server-side in the oauthStates collection. The callback must
present a state that verifies, has not expired, names the same integration,
and whose jti is still on record. Consuming deletes the record, so a state
works once.
"""
import logging
import secrets
import time
import uuid
from typing import Optional

from jose import jwt, JWTError, ExpiredSignatureError

from app.core.config import settings
from app.core.document_store import DocumentStore, OAUTH_STATES
from app.core.exceptions import OAuthStateError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

# Used when OAUTH_STATE_SECRET is not configured; states then do not survive a restart
_ephemeral_secret = secrets.token_urlsafe(32)


def get_state_secret() -> str:
    if not settings.OAUTH_STATE_SECRET:
        logger.warning("OAUTH_STATE_SECRET not configured - using an ephemeral signing key")
        return _ephemeral_secret
    return settings.OAUTH_STATE_SECRET


async def issue_state(store: DocumentStore, integration: str, ttl_seconds: Optional[int] = None) -> str:
    """
    Create a single-use state token for an authorization redirect

    Returns:
        Signed JWT to pass as the OAuth "state" parameter
    """
    ttl = ttl_seconds or settings.OAUTH_STATE_TTL_SECONDS
    now = int(time.time())
    jti = uuid.uuid4().hex
    claims = {"jti": jti, "integration": integration, "iat": now, "exp": now + ttl}

    await store.set(OAUTH_STATES, jti, {"integration": integration, "createdAt": now, "expiresAt": now + ttl})
    return jwt.encode(claims, get_state_secret(), algorithm=JWT_ALGORITHM)


async def consume_state(store: DocumentStore, state: Optional[str], integration: str) -> None:
    """
    Validate and burn a state token

    Raises:
        OAuthStateError: missing, tampered, expired, wrong integration, or already used
    """
    if not state:
        raise OAuthStateError("Missing OAuth state")

    try:
        claims = jwt.decode(state, get_state_secret(), algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise OAuthStateError("OAuth state has expired") from e
    except JWTError as e:
        raise OAuthStateError("Invalid OAuth state") from e

    if claims.get("integration") != integration:
        raise OAuthStateError("OAuth state was issued for another integration")

    jti = claims.get("jti")

    def _consume(tx):
        if not jti or tx.get(OAUTH_STATES, jti) is None:
            return False
        tx.delete(OAUTH_STATES, jti)
        return True

    if not await store.run_transaction(_consume):
        raise OAuthStateError("OAuth state already used or unknown")
