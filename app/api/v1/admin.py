# app/api/v1/admin.py
import logging

from fastapi import APIRouter, Depends, Path

from app.api.deps import get_token_manager, require_admin
from app.core.tokens import TokenManager
from app.models.user import User

log = logging.getLogger(__name__)

router = APIRouter()

@router.delete("/users/{user_id}/tokens")
def revoke_user_tokens(
    user_id: int = Path(..., ge=1),
    admin: User = Depends(require_admin),
    tokens: TokenManager = Depends(get_token_manager),
):
    tokens.revoke(user_id)
    log.info("admin %s revoked sessions of user %s", admin.id, user_id)
    return {"ok": True}

@router.post("/tokens/revoke-all")
def revoke_all_tokens(
    admin: User = Depends(require_admin),
    tokens: TokenManager = Depends(get_token_manager),
):
    # derruba inclusive a sessão do próprio admin
    deleted = tokens.revoke_all()
    log.warning("admin %s revoked all sessions", admin.id)
    return {"ok": True, "revoked": deleted}
