import hashlib
import secrets
import string


def generate_numeric_code(length: int) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_opaque_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def matches_hash(value: str, expected_hash: str) -> bool:
    return secrets.compare_digest(sha256_hex(value), expected_hash)
