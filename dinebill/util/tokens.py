import hashlib

TOKEN_LENGTH = 32


def table_token(restaurant_id: str, table_no: str) -> str:
    """Permanent public token for a dining table's QR link.

    Same restaurant and table label always give the same token, so the QR
    code can be printed once. No key, no expiry, nothing stored to rotate.
    """
    digest = hashlib.sha256(f"{restaurant_id}:{table_no}".encode("utf-8")).hexdigest()
    return digest[:TOKEN_LENGTH]
