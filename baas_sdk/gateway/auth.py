"""
Request authentication for the BaaS gateway.

Each outbound call carries a single-use token derived from the shared
credential and the call parameters:

    sign = md5_hex(sha256_hex(rand + "&p1" + "&p2" ... + "&chainid" + "&sdkid" + "&key"))

The gateway verifies the same two-stage digest, so the order of the stages
and of the concatenated fields must not change.
"""
import hashlib
import logging
import secrets
from typing import Optional, Sequence

from ..models import AuthCredential, AuthToken

logger = logging.getLogger(__name__)

RAND_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
RAND_LENGTH = 16
DELIMITER = "&"


def random_string(length: int = RAND_LENGTH) -> str:
    """Return a random string over lowercase letters and digits."""
    return "".join(secrets.choice(RAND_ALPHABET) for _ in range(length))


def compute_signature(rand: str, params: Sequence[str], credential: AuthCredential) -> str:
    """
    Compute the request signature for a fixed ``rand``.

    Args:
        rand: Auth nonce
        params: Call parameters, in request order
        credential: Shared credential

    Returns:
        Lowercase hex signature
    """
    parts = [rand]
    parts.extend(DELIMITER + str(p) for p in params)
    parts.extend(DELIMITER + field for field in (
        credential.chain_id, credential.sdk_id, credential.secret_key
    ))
    origin = "".join(parts)
    digest = hashlib.sha256(origin.encode("utf-8")).hexdigest()
    return hashlib.md5(digest.encode("ascii")).hexdigest()


class AuthSigner:
    """Derives per-call auth tokens from a shared credential."""

    def __init__(self, credential: Optional[AuthCredential] = None):
        self.credential = credential

    @property
    def enabled(self) -> bool:
        return self.credential is not None and self.credential.is_complete

    def sign(self, params: Sequence[str], rand: Optional[str] = None) -> Optional[AuthToken]:
        """
        Build an auth token for ``params``.

        Args:
            params: Parameters the signature covers
            rand: Fixed auth nonce (a fresh one is generated when omitted)

        Returns:
            AuthToken, or None when the credential is incomplete and the call
            must go out unauthenticated
        """
        if not self.enabled:
            return None
        rand = rand if rand is not None else random_string()
        signature = compute_signature(rand, params, self.credential)
        logger.debug(f"Signed request for sdk {self.credential.sdk_id} with rand {rand}")
        return AuthToken(
            chainid=self.credential.chain_id,
            sdkid=self.credential.sdk_id,
            rand=rand,
            sign=signature,
        )
