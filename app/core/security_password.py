# app/core/security_password.py
from __future__ import annotations
from typing import Tuple
from passlib.context import CryptContext

# argon2 é o esquema atual; hashes bcrypt antigos são migrados no login
pwd_context = CryptContext(
    schemes=["argon2", "bcrypt_sha256", "bcrypt"],
    deprecated="auto",
    argon2__time_cost=2,
    argon2__memory_cost=19456,
    argon2__parallelism=1,
)

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)

def check_password(plain: str, stored_hash: str) -> Tuple[bool, str | None]:
    """(senha confere?, novo hash se o esquema estiver obsoleto)."""
    ok, new_hash = pwd_context.verify_and_update(plain, stored_hash)
    return bool(ok), new_hash
