# Password hashing

import hmac
import logging
from Crypto.Protocol.KDF import PBKDF2
from Crypto.Random import get_random_bytes
from Crypto.Hash import SHA256

ALGORITHM = 'pbkdf2_sha256'
ITERATIONS = 200_000

# --- Key derivation (PBKDF2-HMAC-SHA256) ---

def _derive_key(passphrase: str, salt: bytes, iterations: int = ITERATIONS) -> bytes:
    logging.debug(f'Deriving key with PBKDF2: iterations={iterations}, salt_len={len(salt)}')
    return PBKDF2(passphrase, salt, dkLen=32, count=iterations, hmac_hash_module=SHA256)

def hash_password(password: str, iterations: int = ITERATIONS) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt hex>$<key hex>`` for a new random salt."""
    salt = get_random_bytes(16)
    key = _derive_key(password, salt, iterations)
    return f'{ALGORITHM}${iterations}${salt.hex()}${key.hex()}'

def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt_hex, key_hex = encoded.split('$')
        salt, expected = bytes.fromhex(salt_hex), bytes.fromhex(key_hex)
        iterations = int(iterations)
    except ValueError:
        logging.warning('Stored password hash is malformed')
        return False
    if algorithm != ALGORITHM:
        return False
    candidate = _derive_key(password, salt, iterations)
    return hmac.compare_digest(candidate, expected)

# Spent on unknown emails so both login failures take the same time
def burn_password_check(password: str, iterations: int = ITERATIONS) -> None:
    _derive_key(password, get_random_bytes(16), iterations)
