# app/core/tokens.py
"""
Ciclo de vida dos tokens (par access/refresh).

A validação é composta de duas checagens explícitas:

1. assinatura + claims de tempo (``nbf <= agora < exp``), local e barata;
2. comparação com o registro único do sujeito no credential store.

O store é a autoridade: um token bem assinado que não bate com o registro
atual é rejeitado. Como cada ``issue_pair`` sobrescreve o registro, só existe
uma sessão ativa por sujeito.
"""
from __future__ import annotations

import hmac
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from jose import jwt, JWTError

from app.core.config import settings
from app.core.errors import MalformedOrExpired, Revoked, WrongTokenKind
from app.db.credential_store import CredentialStore, chunked

log = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"
KEY_PREFIX = "subject_tokens:"
_FIELD_FOR_KIND = {ACCESS: "access_secret", REFRESH: "refresh_secret"}
_DELETE_BATCH = 500


def _now() -> datetime:
    return datetime.now(timezone.utc)


def subject_key(subject_id: int) -> str:
    return f"{KEY_PREFIX}{subject_id}"


@dataclass(frozen=True)
class TokenPair:
    access_secret: str
    refresh_secret: str
    access_ttl: int  # segundos


@dataclass(frozen=True)
class Claims:
    subject_id: int
    subject_name: str
    kind: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime


class TokenManager:
    def __init__(
        self,
        store: CredentialStore,
        *,
        secret_key: str | None = None,
        algorithm: str | None = None,
        access_ttl: timedelta | None = None,
        refresh_ttl: timedelta | None = None,
        clock: Callable[[], datetime] = _now,
    ):
        self.store = store
        self.secret_key = secret_key or settings.SECRET_KEY
        self.algorithm = algorithm or settings.ALGORITHM
        self.access_ttl = access_ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = refresh_ttl or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self._clock = clock

    # ---------- emissão ----------
    def _sign(self, subject_id: int, subject_name: str, kind: str, now: datetime, ttl: timedelta) -> str:
        payload: Dict[str, Any] = {
            "user_id": subject_id,
            "username": subject_name,
            "token_type": kind,
            "jti": uuid.uuid4().hex,
            "iat": int(now.timestamp()),
            "nbf": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def issue_pair(self, subject_id: int, subject_name: str) -> TokenPair:
        """Emite um par novo e sobrescreve o registro do sujeito no store."""
        now = self._clock()
        access = self._sign(subject_id, subject_name, ACCESS, now, self.access_ttl)
        refresh = self._sign(subject_id, subject_name, REFRESH, now, self.refresh_ttl)
        self.store.set_fields(
            subject_key(subject_id),
            {
                "access_secret": access,
                "refresh_secret": refresh,
                "created_at": int(now.timestamp()),
            },
            int(self.refresh_ttl.total_seconds()),
        )
        log.info("issued token pair subject_id=%s", subject_id)
        return TokenPair(access, refresh, int(self.access_ttl.total_seconds()))

    # ---------- validação ----------
    def _decode(self, secret: str) -> Claims:
        try:
            # exp/nbf conferidos abaixo contra o mesmo relógio da emissão
            payload = jwt.decode(
                secret,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_nbf": False},
            )
        except JWTError as exc:
            raise MalformedOrExpired() from exc
        if not isinstance(payload, dict):
            raise MalformedOrExpired()
        kind = payload.get("token_type")
        subject_id = payload.get("user_id")
        exp = payload.get("exp")
        if kind not in _FIELD_FOR_KIND or not isinstance(subject_id, int) or not isinstance(exp, int):
            raise MalformedOrExpired()
        claims = Claims(
            subject_id=subject_id,
            subject_name=str(payload.get("username") or ""),
            kind=kind,
            issued_at=datetime.fromtimestamp(payload.get("iat", 0), tz=timezone.utc),
            not_before=datetime.fromtimestamp(payload.get("nbf", 0), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
        if not claims.not_before <= self._clock() < claims.expires_at:
            raise MalformedOrExpired()
        return claims

    def validate(self, secret: str) -> Claims:
        claims = self._decode(secret)
        stored: Optional[str] = self.store.get_field(subject_key(claims.subject_id), _FIELD_FOR_KIND[claims.kind])
        if not stored or not hmac.compare_digest(stored.encode(), secret.encode()):
            log.info("rejected %s token subject_id=%s: not the active secret", claims.kind, claims.subject_id)
            raise Revoked()
        return claims

    def refresh_pair(self, refresh_secret: str) -> TokenPair:
        claims = self.validate(refresh_secret)
        if claims.kind != REFRESH:
            raise WrongTokenKind()
        return self.issue_pair(claims.subject_id, claims.subject_name)

    # ---------- revogação ----------
    def revoke(self, subject_id: int) -> None:
        self.store.delete(subject_key(subject_id))
        log.info("revoked tokens subject_id=%s", subject_id)

    def revoke_all(self) -> int:
        """
        Apaga todos os registros ``subject_tokens:*``. Best effort: se um lote
        falhar, os lotes anteriores já foram apagados; o erro é propagado.
        """
        keys = self.store.list_keys_by_prefix(KEY_PREFIX)
        deleted = 0
        for batch in chunked(keys, _DELETE_BATCH):
            try:
                deleted += self.store.delete(*batch)
            except Exception:
                log.error("revoke_all interrupted after %d of %d records", deleted, len(keys))
                raise
        log.warning("revoked all sessions (%d records)", deleted)
        return deleted
