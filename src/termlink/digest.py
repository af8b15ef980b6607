"""
Password digests for the handshake.

The endpoint stores SHA-256(password) and compares it against
SHA-256(response) for every handshake attempt, so the plaintext never
outlives configuration.
"""

from cryptography.hazmat.primitives import constant_time, hashes

DIGEST_SIZE = 32


def sha256_digest(data: bytes) -> bytes:
    """Return the SHA-256 digest of data."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize()


def digest_matches(response: bytes, expected: bytes) -> bool:
    """Check a handshake response against a stored digest in constant time."""
    return constant_time.bytes_eq(sha256_digest(response), expected)
