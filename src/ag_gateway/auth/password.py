"""Password hashing with the ``bcrypt`` library.

bcrypt only looks at the first 72 bytes and recent releases refuse longer
input, so the signup schema caps passwords at 72 characters and the bytes
are truncated here as a second guard.
"""

import bcrypt

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    hashed: bytes = bcrypt.hashpw(_encode(plain), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False
