import logging

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.errors import AuthError, WrongTokenKind
from app.core.tokens import ACCESS, Claims, TokenManager
from app.db.session import get_db
from app.models.user import User
from app.services.orders import OrderSettlementEngine

log = logging.getLogger(__name__)

__all__ = [
    "get_db",
    "get_bearer_token",
    "get_token_manager",
    "get_settlement_engine",
    "get_current_claims",
    "get_current_user",
    "require_admin",
]

# ----------------------------------------------------------------------
# Lê o Bearer do header Authorization (sem usar OAuth2PasswordBearer)
# ----------------------------------------------------------------------
def get_bearer_token(authorization: str = Header(None, alias="Authorization")) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return parts[1]

# ----------------------------------------------------------------------
# Colaboradores criados no startup (app.state)
# ----------------------------------------------------------------------
def get_token_manager(request: Request) -> TokenManager:
    return request.app.state.token_manager

def get_settlement_engine(request: Request) -> OrderSettlementEngine:
    return request.app.state.settlement_engine

# ----------------------------------------------------------------------
# Autenticação: só access tokens abrem a API. O motivo da recusa vai
# para o log, nunca para o cliente. Store fora do ar -> 503 (falha fechada).
# ----------------------------------------------------------------------
def get_current_claims(
    token: str = Depends(get_bearer_token),
    tokens: TokenManager = Depends(get_token_manager),
) -> Claims:
    try:
        claims = tokens.validate(token)
        if claims.kind != ACCESS:
            raise WrongTokenKind()
    except AuthError as exc:
        log.info("authentication rejected: %s", exc.message)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return claims

def get_current_user(
    claims: Claims = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, claims.subject_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user

def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
    return user
