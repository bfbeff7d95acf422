"""Tests for the paste service functions."""

import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

import app.services.paste_service as paste_service_module
from app.database import Base
from app.models.paste import Paste
from app.services.paste_service import (
    create_paste,
    delete_with_auth,
    delete_with_token,
    purge_expired_pastes,
    resolve_views_allowed,
    retrieve_paste,
    with_storage_retries,
)
from pastecore.encoding import b64url_encode
from pastecore.errors import InvalidToken, NotFound, ServerError, ValidationError
from tests.test_utils import fake_payload, future_ts, utcnow


def make_paste(db, **kwargs):
    data = fake_payload()
    params = {
        "db": db,
        "ciphertext_b64": data["ct"],
        "iv_b64": data["iv"],
        "expire_ts": future_ts(),
    }
    params.update(kwargs)
    return create_paste(**params)


class TestCreatePaste:
    def test_create_paste(self, db_session):
        paste, delete_token = make_paste(db_session, mime="text/plain")

        assert len(paste.id) == 10
        assert paste.id.isalnum()
        assert len(delete_token) == 24
        assert paste.views_used == 0
        assert paste.views_allowed is None
        assert paste.mime == "text/plain"

    def test_only_hashes_are_stored(self, db_session):
        paste, delete_token = make_paste(db_session, delete_auth="derived-auth")

        assert paste.delete_token_hash != delete_token
        assert paste.delete_token_hash.startswith("$argon2id$")
        assert paste.delete_auth_hash.startswith("$argon2id$")

    def test_ids_are_unique(self, db_session):
        ids = {make_paste(db_session)[0].id for _ in range(5)}
        assert len(ids) == 5

    def test_single_view_sets_one_view(self, db_session):
        paste, _ = make_paste(db_session, single_view=True)
        assert paste.views_allowed == 1
        assert paste.single_view

    def test_empty_ciphertext_rejected(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            make_paste(db_session, ciphertext_b64="")
        assert exc_info.value.code == "size_invalid"

    def test_oversized_ciphertext_rejected(self, db_session, monkeypatch):
        monkeypatch.setattr(paste_service_module.settings, "max_ciphertext_size", 64)
        with pytest.raises(ValidationError) as exc_info:
            make_paste(db_session, ciphertext_b64=b64url_encode(b"x" * 65))
        assert exc_info.value.code == "size_invalid"

    def test_ciphertext_at_limit_accepted(self, db_session, monkeypatch):
        monkeypatch.setattr(paste_service_module.settings, "max_ciphertext_size", 64)
        paste, _ = make_paste(db_session, ciphertext_b64=b64url_encode(b"x" * 64))
        assert len(paste.ciphertext) == 64

    @pytest.mark.parametrize("iv_size", [11, 65])
    def test_iv_size_bounds(self, db_session, iv_size):
        with pytest.raises(ValidationError) as exc_info:
            make_paste(db_session, iv_b64=b64url_encode(b"\x00" * iv_size))
        assert exc_info.value.code == "size_invalid"

    def test_malformed_base64_rejected(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            make_paste(db_session, ciphertext_b64="not+base64/")
        assert exc_info.value.code == "size_invalid"

    @pytest.mark.parametrize("offset", [-60, 0, 10])
    def test_expiry_too_soon(self, db_session, offset):
        with pytest.raises(ValidationError) as exc_info:
            make_paste(db_session, expire_ts=future_ts(offset))
        assert exc_info.value.code == "expiry_too_soon"

    def test_expiry_out_of_range(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            make_paste(db_session, expire_ts=10**15)
        assert exc_info.value.code == "expiry_invalid"


class TestResolveViewsAllowed:
    def test_unlimited(self):
        assert resolve_views_allowed(None, None) is None
        assert resolve_views_allowed(None, False) is None

    def test_single_view(self):
        assert resolve_views_allowed(None, True) == 1
        assert resolve_views_allowed(1, True) == 1

    def test_single_view_conflict(self):
        with pytest.raises(ValidationError):
            resolve_views_allowed(5, True)

    @pytest.mark.parametrize("views", [0, -1, 1001])
    def test_out_of_range(self, views):
        with pytest.raises(ValidationError) as exc_info:
            resolve_views_allowed(views, None)
        assert exc_info.value.code == "views_invalid"


class TestRetrievePaste:
    def test_unlimited_views(self, db_session):
        paste, _ = make_paste(db_session)

        for _ in range(3):
            result = retrieve_paste(db_session, paste.id)
            assert result.views_left is None

        db_session.expire_all()
        assert db_session.get(Paste, paste.id).views_used == 3

    def test_returns_stored_payload(self, db_session):
        data = fake_payload()
        paste, _ = make_paste(db_session, ciphertext_b64=data["ct"], iv_b64=data["iv"], mime="text/markdown")

        result = retrieve_paste(db_session, paste.id)

        assert b64url_encode(result.ciphertext) == data["ct"]
        assert b64url_encode(result.iv) == data["iv"]
        assert result.mime == "text/markdown"

    def test_single_view_deleted_after_read(self, db_session):
        paste, _ = make_paste(db_session, single_view=True)
        paste_id = paste.id

        result = retrieve_paste(db_session, paste_id)
        assert result.views_left == 1

        with pytest.raises(NotFound):
            retrieve_paste(db_session, paste_id)
        db_session.expire_all()
        assert db_session.get(Paste, paste_id) is None

    def test_two_views_count_down(self, db_session):
        paste, _ = make_paste(db_session, views_allowed=2)
        paste_id = paste.id

        assert retrieve_paste(db_session, paste_id).views_left == 2
        assert retrieve_paste(db_session, paste_id).views_left == 1
        with pytest.raises(NotFound):
            retrieve_paste(db_session, paste_id)

    def test_unknown_id(self, db_session):
        with pytest.raises(NotFound):
            retrieve_paste(db_session, "doesnotexist")

    def test_expired_paste_not_served(self, db_session):
        paste, _ = make_paste(db_session)
        paste.expire_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        with pytest.raises(NotFound):
            retrieve_paste(db_session, paste.id)

    def test_concurrent_last_view_served_once(self, tmp_path):
        # Separate connections per thread need a file database
        engine = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 15},
        )
        Base.metadata.create_all(bind=engine)
        Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        setup = Session()
        paste, _ = make_paste(setup, single_view=True)
        paste_id = paste.id
        setup.close()

        barrier = threading.Barrier(6)
        outcomes = []
        lock = threading.Lock()

        def read():
            db = Session()
            try:
                barrier.wait()
                retrieve_paste(db, paste_id)
                outcome = "served"
            except NotFound:
                outcome = "not_found"
            finally:
                db.close()
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=read) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        engine.dispose()
        assert outcomes.count("served") == 1
        assert outcomes.count("not_found") == 5


class TestDeletePaste:
    def test_delete_with_token(self, db_session):
        paste, delete_token = make_paste(db_session)
        paste_id = paste.id

        delete_with_token(db_session, paste_id, delete_token)

        with pytest.raises(NotFound):
            retrieve_paste(db_session, paste_id)

    def test_delete_twice(self, db_session):
        paste, delete_token = make_paste(db_session)
        paste_id = paste.id
        delete_with_token(db_session, paste_id, delete_token)

        with pytest.raises(InvalidToken):
            delete_with_token(db_session, paste_id, delete_token)

    def test_wrong_token_keeps_paste(self, db_session):
        paste, _ = make_paste(db_session)

        with pytest.raises(InvalidToken):
            delete_with_token(db_session, paste.id, "wrong-token")

        assert retrieve_paste(db_session, paste.id) is not None

    def test_unknown_paste(self, db_session):
        with pytest.raises(InvalidToken):
            delete_with_token(db_session, "doesnotexist", "whatever")

    def test_delete_with_auth(self, db_session):
        paste, _ = make_paste(db_session, delete_auth="derived-auth")
        paste_id = paste.id

        delete_with_auth(db_session, paste_id, "derived-auth")

        with pytest.raises(NotFound):
            retrieve_paste(db_session, paste_id)

    def test_delete_with_auth_does_not_count_a_view(self, db_session):
        paste, _ = make_paste(db_session, delete_auth="derived-auth", single_view=True)

        with pytest.raises(InvalidToken):
            delete_with_auth(db_session, paste.id, "wrong-auth")

        assert retrieve_paste(db_session, paste.id).views_left == 1

    def test_auth_not_set(self, db_session):
        paste, _ = make_paste(db_session)
        with pytest.raises(InvalidToken):
            delete_with_auth(db_session, paste.id, "anything")

    def test_token_and_auth_not_interchangeable(self, db_session):
        paste, delete_token = make_paste(db_session, delete_auth="derived-auth")
        with pytest.raises(InvalidToken):
            delete_with_auth(db_session, paste.id, delete_token)
        with pytest.raises(InvalidToken):
            delete_with_token(db_session, paste.id, "derived-auth")


class TestPurgeExpiredPastes:
    def test_purge_expired_pastes(self, db_session):
        expired, _ = make_paste(db_session)
        live, _ = make_paste(db_session)
        expired.expire_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        expired_id, live_id = expired.id, live.id

        assert purge_expired_pastes(db_session) == 1

        db_session.expire_all()
        assert db_session.get(Paste, expired_id) is None
        assert db_session.get(Paste, live_id) is not None

    def test_purge_nothing(self, db_session):
        make_paste(db_session)
        assert purge_expired_pastes(db_session) == 0


class TestStorageRetries:
    def test_transient_error_retried(self, db_session, monkeypatch):
        monkeypatch.setattr(paste_service_module.settings, "storage_retry_backoff_seconds", 0)
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))
            return "done"

        assert with_storage_retries(db_session, "test", flaky) == "done"
        assert len(calls) == 3

    def test_exhausted_retries_raise_server_error(self, db_session, monkeypatch):
        monkeypatch.setattr(paste_service_module.settings, "storage_retry_backoff_seconds", 0)
        monkeypatch.setattr(paste_service_module.settings, "storage_retry_attempts", 2)
        calls = []

        def broken():
            calls.append(1)
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        with pytest.raises(ServerError) as exc_info:
            with_storage_retries(db_session, "test", broken)
        assert exc_info.value.code == "db_error"
        assert len(calls) == 2

    def test_domain_errors_not_retried(self, db_session):
        calls = []

        def missing():
            calls.append(1)
            raise NotFound()

        with pytest.raises(NotFound):
            with_storage_retries(db_session, "test", missing)
        assert len(calls) == 1
