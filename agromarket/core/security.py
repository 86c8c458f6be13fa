import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from fastapi import status
from jose import JWTError, jwt
from passlib.context import CryptContext

from . import config
from .errors import AppError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)


def create_access_token(user_id: int, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a JWT binding `{id, role}`; expires after ACCESS_TOKEN_EXPIRE_DAYS by default."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=config.ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode = {"id": user_id, "role": role, "exp": expire}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Return the verified claims, or None when the signature, expiry or claims are invalid."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("id"), int) or not isinstance(payload.get("role"), str):
        return None
    return payload


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer <token>` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def _encryption_key() -> bytes:
    key = bytes.fromhex(config.ENCRYPTION_KEY or "")
    if len(key) != 32:
        raise ValueError("ENCRYPTION_KEY must be 32 bytes hex encoded")
    return key


def encrypt(data: str) -> str:
    """
    Encrypt a sensitive field with AES-256-CBC.

    Returns:
        str: `<iv hex>:<ciphertext hex>`, with a fresh random IV on every call

    Raises:
        AppError: 500 if the key is missing or invalid
    """
    try:
        iv = os.urandom(16)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(_encryption_key()), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}:{encrypted.hex()}"
    except Exception as e:
        logger.error(f"Encryption failed: {str(e)}")
        raise AppError("Encryption failed", status.HTTP_500_INTERNAL_SERVER_ERROR)


def decrypt(encrypted_data: str) -> str:
    """Reverse `encrypt`: split on the `:` separator and decrypt with the same key."""
    try:
        iv_hex, encrypted_hex = encrypted_data.split(":")
        decryptor = Cipher(algorithms.AES(_encryption_key()), modes.CBC(bytes.fromhex(iv_hex))).decryptor()
        padded = decryptor.update(bytes.fromhex(encrypted_hex)) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
    except Exception as e:
        logger.error(f"Decryption failed: {str(e)}")
        raise AppError("Decryption failed", status.HTTP_500_INTERNAL_SERVER_ERROR)
