"""Tests for idempotency model, repository and core helpers."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.idempotency import (
    KEY_REUSED_DETAIL,
    IdempotencyResult,
    check_idempotency,
    fingerprint_request,
    record_idempotency_response,
    release_idempotency_key,
)
from app.models.idempotency_record import IdempotencyRecord
from app.repositories.idempotency_repository import IdempotencyRepository

SCOPE = "tenant:1"


@pytest.fixture
def repo(db_session: Session) -> IdempotencyRepository:
    return IdempotencyRepository(db_session)


def _create(repo: IdempotencyRepository, key: str, scope: str = SCOPE) -> IdempotencyRecord:
    return repo.create(
        scope=scope,
        idempotency_key=key,
        request_method="POST",
        request_path="/v1/payments/initiate",
    )


def _make_request(
    headers: dict[str, str] | None = None, method: str = "POST", path: str = "/v1/payments/initiate"
) -> Request:
    """Build a minimal ASGI Request for testing."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    return Request(scope)


class TestIdempotencyRepository:
    def test_create_and_get_by_key(self, repo: IdempotencyRepository) -> None:
        record = _create(repo, "key-1")

        fetched = repo.get_by_key(SCOPE, "key-1")

        assert fetched is not None
        assert fetched.id == record.id
        assert fetched.response_status is None
        assert fetched.created_at is not None

    def test_get_by_key_not_found(self, repo: IdempotencyRepository) -> None:
        assert repo.get_by_key(SCOPE, "missing") is None

    def test_unique_per_scope(self, db_session: Session, repo: IdempotencyRepository) -> None:
        _create(repo, "dup-key")

        with pytest.raises(IntegrityError):
            _create(repo, "dup-key")
        db_session.rollback()

    def test_scopes_dont_collide(self, repo: IdempotencyRepository) -> None:
        first = _create(repo, "shared", scope="tenant:1")
        second = _create(repo, "shared", scope="tenant:2")

        assert first.id != second.id
        assert repo.get_by_key("tenant:2", "shared").id == second.id

    def test_update_response(self, repo: IdempotencyRepository) -> None:
        record = _create(repo, "key-2")

        updated = repo.update_response(record, 200, {"payment_intent_id": "pi_1"})

        assert updated.response_status == 200
        assert updated.response_body == {"payment_intent_id": "pi_1"}

    def test_delete_expired(self, db_session: Session, repo: IdempotencyRepository) -> None:
        record = _create(repo, "old-key")
        record.created_at = datetime.now(UTC) - timedelta(hours=25)  # type: ignore[assignment]
        db_session.commit()
        _create(repo, "new-key")

        assert repo.delete_expired(max_age_hours=24) == 1
        assert repo.get_by_key(SCOPE, "old-key") is None
        assert repo.get_by_key(SCOPE, "new-key") is not None

    def test_delete_expired_none(self, repo: IdempotencyRepository) -> None:
        _create(repo, "fresh-key")
        assert repo.delete_expired(max_age_hours=24) == 0


class TestCheckIdempotency:
    def test_no_header_returns_none(self, db_session: Session) -> None:
        assert check_idempotency(_make_request(), db_session, SCOPE) is None

    def test_new_key_returns_idempotency_result(self, db_session: Session, repo: IdempotencyRepository) -> None:
        result = check_idempotency(_make_request(headers={"Idempotency-Key": "new-key"}), db_session, SCOPE)

        assert result == IdempotencyResult(scope=SCOPE, key="new-key", method="POST", path="/v1/payments/initiate")
        assert repo.get_by_key(SCOPE, "new-key") is not None

    def test_completed_key_replays_response(self, db_session: Session, repo: IdempotencyRepository) -> None:
        repo.update_response(_create(repo, "done-key"), 200, {"payment_intent_id": "pi_1"})

        result = check_idempotency(_make_request(headers={"Idempotency-Key": "done-key"}), db_session, SCOPE)

        assert isinstance(result, JSONResponse)
        assert result.status_code == 200
        assert result.headers["Idempotency-Replayed"] == "true"
        assert result.body == b'{"payment_intent_id":"pi_1"}'

    def test_pending_key_returns_idempotency_result(self, db_session: Session, repo: IdempotencyRepository) -> None:
        _create(repo, "pending-key")

        result = check_idempotency(_make_request(headers={"Idempotency-Key": "pending-key"}), db_session, SCOPE)

        assert isinstance(result, IdempotencyResult)
        assert db_session.query(IdempotencyRecord).count() == 1

    def test_other_scope_is_not_replayed(self, db_session: Session, repo: IdempotencyRepository) -> None:
        repo.update_response(_create(repo, "key", scope="tenant:2"), 200, {})

        result = check_idempotency(_make_request(headers={"Idempotency-Key": "key"}), db_session, SCOPE)

        assert isinstance(result, IdempotencyResult)


class TestRecordAndRelease:
    def test_records_response(self, db_session: Session, repo: IdempotencyRepository) -> None:
        pending = check_idempotency(_make_request(headers={"Idempotency-Key": "k"}), db_session, SCOPE)

        record_idempotency_response(db_session, pending, 200, {"ok": True})

        record = repo.get_by_key(SCOPE, "k")
        assert record.response_status == 200
        assert record.response_body == {"ok": True}

    def test_record_without_row_does_nothing(self, db_session: Session) -> None:
        pending = IdempotencyResult(scope=SCOPE, key="gone", method="POST", path="/")
        record_idempotency_response(db_session, pending, 200, {})
        assert db_session.query(IdempotencyRecord).count() == 0

    def test_release_pending_key(self, db_session: Session, repo: IdempotencyRepository) -> None:
        pending = check_idempotency(_make_request(headers={"Idempotency-Key": "k"}), db_session, SCOPE)

        release_idempotency_key(db_session, pending)

        assert repo.get_by_key(SCOPE, "k") is None

    def test_release_keeps_completed_key(self, db_session: Session, repo: IdempotencyRepository) -> None:
        pending = check_idempotency(_make_request(headers={"Idempotency-Key": "k"}), db_session, SCOPE)
        record_idempotency_response(db_session, pending, 200, {})

        release_idempotency_key(db_session, pending)

        assert repo.get_by_key(SCOPE, "k") is not None


class TestRequestFingerprint:
    PAYLOAD = {"tenant_id": "t-1", "tot_amt": 12000, "billing_cycle": "monthly"}

    def test_fingerprint_ignores_key_order(self) -> None:
        reordered = {"billing_cycle": "monthly", "tot_amt": 12000, "tenant_id": "t-1"}

        assert fingerprint_request(self.PAYLOAD) == fingerprint_request(reordered)
        assert len(fingerprint_request(self.PAYLOAD)) == 64

    def test_fingerprint_changes_with_payload(self) -> None:
        changed = {**self.PAYLOAD, "tot_amt": 56000}
        assert fingerprint_request(self.PAYLOAD) != fingerprint_request(changed)

    def test_new_key_stores_fingerprint(self, db_session: Session, repo: IdempotencyRepository) -> None:
        request = _make_request(headers={"Idempotency-Key": "k"})

        result = check_idempotency(request, db_session, SCOPE, self.PAYLOAD)

        assert result.request_hash == fingerprint_request(self.PAYLOAD)
        assert repo.get_by_key(SCOPE, "k").request_hash == result.request_hash

    def test_same_payload_replays(self, db_session: Session) -> None:
        request = _make_request(headers={"Idempotency-Key": "k"})
        pending = check_idempotency(request, db_session, SCOPE, self.PAYLOAD)
        record_idempotency_response(db_session, pending, 200, {"payment_intent_id": "pi_1"})

        result = check_idempotency(request, db_session, SCOPE, dict(self.PAYLOAD))

        assert isinstance(result, JSONResponse)
        assert result.headers["Idempotency-Replayed"] == "true"

    def test_different_payload_is_rejected(self, db_session: Session) -> None:
        request = _make_request(headers={"Idempotency-Key": "k"})
        pending = check_idempotency(request, db_session, SCOPE, self.PAYLOAD)
        record_idempotency_response(db_session, pending, 200, {"payment_intent_id": "pi_1"})

        result = check_idempotency(request, db_session, SCOPE, {**self.PAYLOAD, "tot_amt": 56000})

        assert isinstance(result, JSONResponse)
        assert result.status_code == 422
        assert "Idempotency-Replayed" not in result.headers
        assert result.body == f'{{"detail":"{KEY_REUSED_DETAIL}"}}'.encode()

    def test_different_payload_while_pending_is_rejected(self, db_session: Session) -> None:
        request = _make_request(headers={"Idempotency-Key": "k"})
        check_idempotency(request, db_session, SCOPE, self.PAYLOAD)

        result = check_idempotency(request, db_session, SCOPE, {**self.PAYLOAD, "tot_amt": 1})

        assert isinstance(result, JSONResponse)
        assert result.status_code == 422

    def test_record_without_fingerprint_still_replays(self, db_session: Session, repo: IdempotencyRepository) -> None:
        repo.update_response(_create(repo, "legacy"), 200, {"payment_intent_id": "pi_1"})

        result = check_idempotency(
            _make_request(headers={"Idempotency-Key": "legacy"}), db_session, SCOPE, self.PAYLOAD
        )

        assert result.status_code == 200
        assert result.headers["Idempotency-Replayed"] == "true"
