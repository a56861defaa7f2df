# app/api/v1/auth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_token_manager, get_current_claims, get_current_user
from app.core.errors import AuthError
from app.core.security_password import check_password
from app.core.tokens import Claims, TokenManager, TokenPair
from app.crud.user import user_crud
from app.models.user import User
from app.schemas.token import RefreshIn, Token
from app.schemas.user import LoginIn, UserCreate, UserOut

log = logging.getLogger(__name__)

router = APIRouter()

# ---------- helpers ----------
def ensure_password_policy(password: str):
    if not isinstance(password, str) or len(password) < 6 or len(password) > 128:
        raise HTTPException(status_code=400, detail="Senha fora do padrão (6–128).")

def _token_out(pair: TokenPair) -> Token:
    return Token(access_token=pair.access_secret, refresh_token=pair.refresh_secret, expires_in=pair.access_ttl)

def _auth_response(user: User, pair: TokenPair) -> dict:
    return {
        **_token_out(pair).model_dump(),
        "user": UserOut.model_validate(user).model_dump(),
    }

# ---------- endpoints ----------
@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(body: UserCreate, db: Session = Depends(get_db)):
    if user_crud.exists(db, username=body.username, email=body.email):
        raise HTTPException(status_code=409, detail="Usuário ou e-mail já cadastrado.")
    return user_crud.create(db, body)

@router.post("/login")
def login(
    body: LoginIn,
    db: Session = Depends(get_db),
    tokens: TokenManager = Depends(get_token_manager),
):
    ensure_password_policy(body.password)
    user = user_crud.get_by_username(db, body.username.strip())
    if not user:
        raise HTTPException(status_code=401, detail="Credenciais inválidas.")

    ok, new_hash = check_password(body.password, user.hashed_password)
    if not ok:
        raise HTTPException(status_code=401, detail="Credenciais inválidas.")
    if new_hash:
        user.hashed_password = new_hash
        db.add(user); db.commit()

    # novo par derruba qualquer sessão anterior do usuário
    pair = tokens.issue_pair(user.id, user.username)
    return _auth_response(user, pair)

@router.post("/refresh", response_model=Token)
def refresh(body: RefreshIn, tokens: TokenManager = Depends(get_token_manager)):
    try:
        pair = tokens.refresh_pair(body.refresh_token)
    except AuthError as exc:
        log.info("refresh rejected: %s", exc.message)
        raise HTTPException(status_code=401, detail="Invalid token")
    return _token_out(pair)

@router.delete("/logout")
def logout(
    claims: Claims = Depends(get_current_claims),
    tokens: TokenManager = Depends(get_token_manager),
):
    tokens.revoke(claims.subject_id)
    return {"ok": True}

@router.get("/profile", response_model=UserOut)
def profile(user: User = Depends(get_current_user)):
    return user
