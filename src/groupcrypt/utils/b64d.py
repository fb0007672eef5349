
import base64


def b64d(value: str | bytes) -> bytes:
    """Strict standard base64 decode.

    Raises ``binascii.Error`` (a ``ValueError``) on characters outside the
    alphabet or incorrect padding.
    """
    if isinstance(value, str):
        value = value.encode("ascii")
    return base64.b64decode(value, validate=True)
