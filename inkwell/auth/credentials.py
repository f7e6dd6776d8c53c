# =============================================================================
# Credential Engine
# =============================================================================
#
# Password hashing and bearer tokens:
#   - PBKDF2-SHA256 hashes, iteration count from settings
#   - JWT issuance (PyJWT), subject + sub-second issued-at + expiry
#   - Validation of decoded claims against the user store, so a token
#     dies when its user is deleted or their blacklist date moves past it
#
# =============================================================================

from __future__ import annotations

import asyncio
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Mapping

import jwt

from inkwell.config import Settings, get_settings
from inkwell.core.errors import InvalidTokenError, TokenSigningError
from inkwell.core.models import TokenValidation
from inkwell.core.utils import Clock, utc_now

if TYPE_CHECKING:
    from inkwell.auth.context import UserLookup

logger = logging.getLogger(__name__)

HASH_SCHEME = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 100_000


# =============================================================================
# Password Hashing
# =============================================================================

def hash_password(password: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    """
    Hash a password using PBKDF2-SHA256.

    Returns: ``pbkdf2_sha256$iterations$salt$hash``. The iteration count
    travels with the hash, so raising the cost later keeps old hashes
    verifiable.
    """
    salt = secrets.token_hex(16)
    hash_bytes = hashlib.pbkdf2_hmac(
        'sha256',
        password.encode('utf-8'),
        salt.encode('utf-8'),
        iterations=iterations,
    )
    return f"{HASH_SCHEME}${iterations}${salt}${hash_bytes.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its hash.

    Returns False on mismatch.

    Raises:
        ValueError: ``password_hash`` is not a hash this module produced.
    """
    try:
        scheme, iterations, salt, stored_hash = password_hash.split('$')
        rounds = int(iterations)
    except (ValueError, AttributeError) as exc:
        raise ValueError("Malformed password hash") from exc

    if scheme != HASH_SCHEME or rounds < 1:
        raise ValueError(f"Unsupported password hash scheme '{scheme}'")

    hash_bytes = hashlib.pbkdf2_hmac(
        'sha256',
        password.encode('utf-8'),
        salt.encode('utf-8'),
        iterations=rounds,
    )
    return secrets.compare_digest(hash_bytes.hex(), stored_hash)


# =============================================================================
# Engine
# =============================================================================

class CredentialEngine:
    """
    Hashes passwords, issues tokens, and validates decoded token claims.

    ``lookup`` is attached after construction when the user repository
    itself depends on this engine (see inkwell.core.provider).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        lookup: UserLookup | None = None,
        clock: Clock = utc_now,
    ):
        self.settings = settings or get_settings()
        self.lookup = lookup
        self.clock = clock

    @property
    def iterations(self) -> int:
        return self.settings.password_hash_iterations

    # -------------------------------------------------------------------------
    # Passwords
    # -------------------------------------------------------------------------

    async def hash(self, plaintext: str) -> str:
        """Hash off the event loop; PBKDF2 is CPU bound."""
        return await asyncio.to_thread(hash_password, plaintext, self.iterations)

    async def verify(self, plaintext: str, password_hash: str) -> bool:
        return await asyncio.to_thread(verify_password, plaintext, password_hash)

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    def issue_token(self, subject_id: int) -> str:
        """
        Create a signed access token for a user.

        ``iat`` keeps sub-second precision so that a token issued right
        after a revocation is not mistaken for one issued before it.

        Raises:
            TokenSigningError: Key or algorithm configuration is unusable.
        """
        now = self.clock()
        expire = now + timedelta(minutes=self.settings.jwt_access_token_expire_minutes)

        payload = {
            "sub": str(subject_id),
            "iat": now.timestamp(),
            "exp": expire,
        }

        try:
            return jwt.encode(
                payload,
                self.settings.jwt_secret_key,
                algorithm=self.settings.jwt_algorithm,
            )
        except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as exc:
            logger.error(f"Token signing failed ({self.settings.jwt_algorithm}): {exc}")
            raise TokenSigningError() from exc

    def decode_token(self, token: str) -> dict[str, Any]:
        """
        Verify signature and expiry, return the claims.

        Raises:
            InvalidTokenError: Token is expired, tampered or malformed.
        """
        try:
            return jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidTokenError("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(f"Invalid token: {exc}") from exc

    async def validate_token(self, claims: Mapping[str, Any]) -> TokenValidation:
        """
        Check already verified claims against the user store.

        Never raises: malformed claims, unknown users, revoked tokens and
        lookup failures all come back as ``valid=False``.
        """
        try:
            user_id = int(claims["sub"])
            issued_at = datetime.fromtimestamp(float(claims["iat"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError, OverflowError):
            logger.info("Token rejected: malformed subject or issued-at claim")
            return TokenValidation(valid=False)

        if self.lookup is None:
            logger.warning("Token rejected: no user lookup configured")
            return TokenValidation(valid=False)

        try:
            valid = await self.lookup.verify_token(user_id, issued_at)
        except Exception as exc:
            logger.warning(f"Token rejected: lookup for user {user_id} failed: {exc}")
            return TokenValidation(valid=False)

        if not valid:
            logger.info(f"Token rejected for user {user_id}: inactive or revoked")
            return TokenValidation(valid=False)

        return TokenValidation(valid=True, user_id=user_id)

    async def authenticate(self, token: str) -> int:
        """
        Decode and validate a raw token, return the user id.

        Raises:
            InvalidTokenError: Token failed either check.
        """
        claims = self.decode_token(token)
        result = await self.validate_token(claims)
        if not result.valid or result.user_id is None:
            raise InvalidTokenError()
        return result.user_id
