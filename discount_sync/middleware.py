import base64
import hashlib
import hmac


def compute_shopify_hmac(request_body: bytes, secret: str) -> str:
    """Return the Base64 HMAC-SHA256 digest Shopify would send for *request_body*."""
    digest = hmac.new(secret.encode("utf-8"), request_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_shopify_hmac(request_body: bytes, hmac_header: str, secret: str) -> bool:
    """Check the ``X-Shopify-Hmac-Sha256`` header of a discount or catalog webhook.

    Args:
        request_body: Raw HTTP request body bytes.
        hmac_header: Value of the ``X-Shopify-Hmac-Sha256`` header.
        secret: The shop's ``webhook_secret``.

    Returns:
        ``False`` when the header or secret is missing or the digest differs.
    """
    if not hmac_header or not secret:
        return False
    return hmac.compare_digest(compute_shopify_hmac(request_body, secret), hmac_header)
