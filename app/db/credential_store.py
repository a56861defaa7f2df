# app/db/credential_store.py
"""
Credential store: chave-valor com expiração por chave.

O ``TokenManager`` só conhece o protocolo ``CredentialStore``; a
implementação de produção é ``RedisCredentialStore`` (um hash por sujeito).
Qualquer erro do Redis, inclusive timeout de socket, vira
``CredentialStoreUnavailable``. Não há retry aqui: a política de retry é do
chamador.
"""
from __future__ import annotations

import logging
from typing import Iterable, Mapping, Protocol

import redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.errors import CredentialStoreUnavailable

log = logging.getLogger(__name__)


class CredentialStore(Protocol):
    def set_fields(self, key: str, fields: Mapping[str, str | int], ttl: int) -> None: ...

    def get_field(self, key: str, field: str) -> str | None: ...

    def delete(self, *keys: str) -> int: ...

    def list_keys_by_prefix(self, prefix: str) -> list[str]: ...

    def ping(self) -> bool: ...


class RedisCredentialStore:
    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str | None = None) -> "RedisCredentialStore":
        client = redis.Redis.from_url(
            url or settings.REDIS_URL,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
            decode_responses=True,
        )
        return cls(client)

    def set_fields(self, key: str, fields: Mapping[str, str | int], ttl: int) -> None:
        # DEL + HSET + EXPIRE numa transação: o registro antigo some por inteiro
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.delete(key)
            pipe.hset(key, mapping=dict(fields))
            pipe.expire(key, ttl)
            pipe.execute()
        except RedisError as exc:
            log.warning("credential store write failed key=%s: %s", key, exc)
            raise CredentialStoreUnavailable() from exc

    def get_field(self, key: str, field: str) -> str | None:
        try:
            return self._client.hget(key, field)
        except RedisError as exc:
            log.warning("credential store read failed key=%s: %s", key, exc)
            raise CredentialStoreUnavailable() from exc

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(self._client.delete(*keys))
        except RedisError as exc:
            log.warning("credential store delete failed (%d keys): %s", len(keys), exc)
            raise CredentialStoreUnavailable() from exc

    def list_keys_by_prefix(self, prefix: str) -> list[str]:
        # SCAN em vez de KEYS para não travar o servidor
        try:
            return list(self._client.scan_iter(match=f"{prefix}*", count=500))
        except RedisError as exc:
            log.warning("credential store scan failed prefix=%s: %s", prefix, exc)
            raise CredentialStoreUnavailable() from exc

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError:
            return False

    def close(self) -> None:
        self._client.close()


def chunked(keys: Iterable[str], size: int) -> Iterable[list[str]]:
    batch: list[str] = []
    for k in keys:
        batch.append(k)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch
