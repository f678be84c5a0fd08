import hashlib


def compute_checksum(data: bytes) -> str:
    """SHA-256 hex digest of the raw upload, used as the dedup key."""
    return hashlib.sha256(data).hexdigest()
