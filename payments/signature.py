import hmac
import hashlib
from typing import Optional


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA512 of the raw request body, as Paystack sends it."""
    return hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()


def signature_matches(raw_body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    if not signature or not secret:
        return False
    return hmac.compare_digest(compute_signature(raw_body, secret).encode(), signature.encode())
