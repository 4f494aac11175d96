"""Idempotency support for API endpoints.

``check_idempotency`` looks at the ``Idempotency-Key`` header. A completed
record for the key is replayed as a JSONResponse; otherwise a pending record
is stored and an ``IdempotencyResult`` is returned so the endpoint can
persist its response with ``record_idempotency_response``. Keys are unique
per scope (e.g. one tenant), so two tenants may reuse the same key.

A key is bound to the request it was first used with: the fingerprint of
the request payload is stored with the record, and the same key sent with a
different payload is rejected with 422 instead of replaying a response that
belongs to another request.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.repositories.idempotency_repository import IdempotencyRepository

logger = logging.getLogger(__name__)

KEY_REUSED_DETAIL = "Idempotency-Key was already used with a different request"


@dataclass
class IdempotencyResult:
    """Holds pending idempotency key info for later recording."""

    scope: str
    key: str
    method: str
    path: str
    request_hash: str | None = None


def fingerprint_request(payload: dict[str, Any]) -> str:
    """SHA-256 of the payload as canonical JSON (sorted keys, no whitespace)."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def check_idempotency(
    request: Request,
    db: Session,
    scope: str,
    payload: dict[str, Any] | None = None,
) -> JSONResponse | IdempotencyResult | None:
    """Check the ``Idempotency-Key`` header for a cached response.

    Returns:
        - ``None`` if no ``Idempotency-Key`` header is present.
        - A ``JSONResponse`` replaying the cached response, with an
          ``Idempotency-Replayed: true`` header.
        - A 422 ``JSONResponse`` if the key was used before with a different
          ``payload``.
        - An ``IdempotencyResult`` for a new key, to be recorded after processing.
    """
    key = request.headers.get("Idempotency-Key")
    if not key:
        return None

    request_hash = fingerprint_request(payload) if payload is not None else None
    repo = IdempotencyRepository(db)
    existing = repo.get_by_key(scope, key)

    if (
        existing is not None
        and existing.request_hash is not None
        and request_hash is not None
        and existing.request_hash != request_hash
    ):
        logger.warning("Idempotency-Key %s reused with a different request in %s", key, scope)
        return JSONResponse(content={"detail": KEY_REUSED_DETAIL}, status_code=422)

    if existing is not None and existing.response_status is not None:
        response = JSONResponse(
            content=existing.response_body,
            status_code=int(existing.response_status),
        )
        response.headers["Idempotency-Replayed"] = "true"
        return response

    if existing is None:
        repo.create(
            scope=scope,
            idempotency_key=key,
            request_method=request.method,
            request_path=request.url.path,
            request_hash=request_hash,
        )

    return IdempotencyResult(
        scope=scope,
        key=key,
        method=request.method,
        path=request.url.path,
        request_hash=request_hash,
    )


def record_idempotency_response(
    db: Session,
    pending: IdempotencyResult,
    status: int,
    body: dict[str, Any],
) -> None:
    """Persist the endpoint response so subsequent calls return the cached result."""
    repo = IdempotencyRepository(db)
    record = repo.get_by_key(pending.scope, pending.key)
    if record is not None:
        repo.update_response(record, status, body)


def release_idempotency_key(db: Session, pending: IdempotencyResult) -> None:
    """Forget a key whose request failed, so the client may retry it."""
    repo = IdempotencyRepository(db)
    record = repo.get_by_key(pending.scope, pending.key)
    if record is not None and record.response_status is None:
        repo.delete(record)
