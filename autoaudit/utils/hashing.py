import hashlib

def compute_sha256(*blobs: bytes) -> str:
    """Compute SHA256 over one or more byte strings, length-prefixed so boundaries count"""
    sha256_hash = hashlib.sha256()
    for blob in blobs:
        sha256_hash.update(len(blob).to_bytes(8, "big"))
        sha256_hash.update(blob)
    return sha256_hash.hexdigest()
