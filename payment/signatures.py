# payment/signatures.py
import hashlib
import hmac
from typing import Optional, Union


def hmac_sha256_hex(secret: Union[str, bytes], message: Union[str, bytes]) -> str:
    """Lowercase hex HMAC-SHA256 of `message` keyed by `secret`."""
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    msg = message.encode("utf-8") if isinstance(message, str) else message
    return hmac.new(key, msg, hashlib.sha256).hexdigest()


def payment_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Signature the gateway attaches to a client side checkout confirmation."""
    return hmac_sha256_hex(secret, f"{order_id}|{payment_id}")


def signatures_match(expected: str, supplied: Optional[str]) -> bool:
    if not supplied:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


def verify_payment_signature(secret: str, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
    return signatures_match(payment_signature(secret, order_id, payment_id), signature)


def verify_webhook_signature(secret: str, raw_body: bytes, signature: Optional[str]) -> bool:
    """Webhooks are signed over the exact request body bytes."""
    return signatures_match(hmac_sha256_hex(secret, raw_body), signature)
