import hashlib
import hmac
from typing import Optional

from src.api.payments.exceptions import SignatureError
from src.config.constants import SignaturePolicy
from src.shared.utils import get_logger

logger = get_logger(__name__)


class WebhookSecretMissingError(SignatureError):
    """Raised when strict signature checking is on but no secret is configured"""


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    raw_body: bytes,
    received_signature: Optional[str],
    secret: str,
    policy: SignaturePolicy = SignaturePolicy.OPTIONAL,
) -> bool:
    """
    Check the HMAC-SHA256 signature of a webhook body.

    Returns True when the signature matches or when checking is skipped
    (optional policy, no secret). Returns False when a required signature
    is missing or wrong.

    Raises:
        WebhookSecretMissingError: strict policy without a configured secret
    """
    if not secret:
        if policy == SignaturePolicy.STRICT:
            raise WebhookSecretMissingError("Webhook secret not configured")
        logger.debug("Webhook signature validation skipped (no secret configured)")
        return True

    if not received_signature:
        logger.warning("Webhook signature missing in header")
        return False

    expected = compute_signature(raw_body, secret)
    # Header values may carry non-ASCII bytes; compare_digest only takes ASCII str
    received = received_signature.strip().lower().encode("utf-8", "surrogateescape")
    if hmac.compare_digest(expected.encode("ascii"), received):
        return True

    logger.error(
        "Webhook signature mismatch",
        extra={
            "expected_prefix": expected[:10],
            "received_prefix": received_signature[:10],
        },
    )
    return False
