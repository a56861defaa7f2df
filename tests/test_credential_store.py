"""Tests for RedisCredentialStore against an in-process Redis (fakeredis)."""

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.core.errors import CredentialStoreUnavailable, Revoked
from app.core.tokens import KEY_PREFIX, TokenManager, subject_key
from app.db.credential_store import RedisCredentialStore, chunked
from tests.conftest import TEST_SECRET


@pytest.fixture
def redis_client():
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def redis_store(redis_client) -> RedisCredentialStore:
    return RedisCredentialStore(redis_client)


def _raise(exc):
    def fail(*args, **kwargs):
        raise exc

    return fail


class TestRedisCredentialStore:
    def test_set_fields_replaces_whole_record_with_ttl(self, redis_store, redis_client):
        redis_store.set_fields("subject_tokens:1", {"access_secret": "a1", "stale": "x"}, 60)
        redis_store.set_fields("subject_tokens:1", {"access_secret": "a2", "created_at": 1700000000}, 3600)

        assert redis_client.hgetall("subject_tokens:1") == {"access_secret": "a2", "created_at": "1700000000"}
        assert 0 < redis_client.ttl("subject_tokens:1") <= 3600
        assert redis_store.get_field("subject_tokens:1", "access_secret") == "a2"
        assert redis_store.get_field("subject_tokens:1", "stale") is None
        assert redis_store.get_field("subject_tokens:2", "access_secret") is None

    def test_delete_counts_existing_keys(self, redis_store):
        redis_store.set_fields("subject_tokens:1", {"f": "v"}, 60)
        assert redis_store.delete("subject_tokens:1", "subject_tokens:404") == 1
        assert redis_store.delete() == 0

    def test_list_keys_by_prefix_matches_only_prefix(self, redis_store, redis_client):
        for i in range(1, 4):
            redis_store.set_fields(subject_key(i), {"f": "v"}, 60)
        redis_client.set("unrelated:1", "x")
        redis_client.set("other_subject_tokens:9", "x")

        keys = redis_store.list_keys_by_prefix(KEY_PREFIX)
        assert sorted(keys) == [subject_key(1), subject_key(2), subject_key(3)]

    def test_ping(self, redis_store, redis_client, monkeypatch):
        assert redis_store.ping() is True
        monkeypatch.setattr(redis_client, "ping", _raise(RedisConnectionError("refused")))
        assert redis_store.ping() is False

    @pytest.mark.parametrize("exc", [RedisTimeoutError("read timed out"), RedisConnectionError("refused")])
    def test_read_errors_become_unavailable(self, redis_store, redis_client, monkeypatch, exc):
        monkeypatch.setattr(redis_client, "hget", _raise(exc))
        with pytest.raises(CredentialStoreUnavailable):
            redis_store.get_field("subject_tokens:1", "access_secret")

    def test_write_timeout_becomes_unavailable(self, redis_store, redis_client, monkeypatch):
        monkeypatch.setattr(redis_client, "pipeline", _raise(RedisTimeoutError("write timed out")))
        with pytest.raises(CredentialStoreUnavailable):
            redis_store.set_fields("subject_tokens:1", {"f": "v"}, 60)

    def test_delete_and_scan_errors_become_unavailable(self, redis_store, redis_client, monkeypatch):
        monkeypatch.setattr(redis_client, "delete", _raise(RedisTimeoutError("timed out")))
        monkeypatch.setattr(redis_client, "scan_iter", _raise(RedisTimeoutError("timed out")))
        with pytest.raises(CredentialStoreUnavailable):
            redis_store.delete("subject_tokens:1")
        with pytest.raises(CredentialStoreUnavailable):
            redis_store.list_keys_by_prefix(KEY_PREFIX)


class TestTokenManagerOnRedis:
    def test_session_lifecycle(self, redis_store, redis_client):
        tokens = TokenManager(redis_store, secret_key=TEST_SECRET)
        old = tokens.issue_pair(1, "alice")
        new = tokens.issue_pair(1, "alice")

        with pytest.raises(Revoked):
            tokens.validate(old.access_secret)
        assert tokens.validate(new.access_secret).subject_id == 1
        assert redis_client.ttl(subject_key(1)) > 6 * 24 * 3600

    def test_revoke_all_keeps_unrelated_keys(self, redis_store, redis_client):
        tokens = TokenManager(redis_store, secret_key=TEST_SECRET)
        pairs = [tokens.issue_pair(i, f"user{i}") for i in range(1, 8)]
        redis_client.set("unrelated:1", "x")

        assert tokens.revoke_all() == 7
        for pair in pairs:
            with pytest.raises(Revoked):
                tokens.validate(pair.access_secret)
        assert redis_client.get("unrelated:1") == "x"

    def test_validate_fails_closed_on_timeout(self, redis_store, redis_client, monkeypatch):
        tokens = TokenManager(redis_store, secret_key=TEST_SECRET)
        pair = tokens.issue_pair(1, "alice")
        monkeypatch.setattr(redis_client, "hget", _raise(RedisTimeoutError("read timed out")))
        with pytest.raises(CredentialStoreUnavailable):
            tokens.validate(pair.access_secret)


def test_chunked():
    assert list(chunked([], 3)) == []
    assert list(chunked(["a", "b", "c", "d"], 3)) == [["a", "b", "c"], ["d"]]
