"""Idempotency-Key handling for retried terminal requests.

A key is scoped to (user, endpoint, method). The first request claims it in
state ``in_progress``; the outcome is then stored and replayed verbatim for
later requests with the same payload fingerprint. Transient failures release
the key so the terminal can retry the same attempt.
"""

import hashlib
import json
from dataclasses import asdict, dataclass

from sqlalchemy.exc import IntegrityError

from app.pdv.core.error_catalog import AppError, ErrorCatalog
from app.pdv.db.models import IdempotencyRecord, utcnow
from app.pdv.repos.idempotency import IdempotencyRepository


IDEMPOTENCY_HEADER = "Idempotency-Key"

STATE_IN_PROGRESS = "in_progress"
STATE_SUCCEEDED = "succeeded"
STATE_FAILED = "failed"


@dataclass(frozen=True)
class IdempotencyScope:
    actor_user_id: str
    endpoint: str
    method: str
    idempotency_key: str


@dataclass
class IdempotencyReplay:
    status_code: int
    response_body: dict


class IdempotencyContext:
    def __init__(self, record: IdempotencyRecord, repo: IdempotencyRepository):
        self._record = record
        self._repo = repo
        self.settled = False

    def _finish(self, state: str, status_code: int, response_body: dict) -> None:
        record = self._record
        record.state = state
        record.status_code = status_code
        record.response_body = json.dumps(response_body)
        record.updated_at = utcnow()
        self._repo.update(record)
        self.settled = True

    def record_success(self, *, status_code: int, response_body: dict) -> None:
        self._finish(STATE_SUCCEEDED, status_code, response_body)

    def record_failure(self, *, status_code: int, response_body: dict) -> None:
        if self.settled:
            return
        # Drop whatever the failed request left pending before storing its outcome.
        self._repo.db.rollback()
        self._finish(STATE_FAILED, status_code, response_body)

    def release(self) -> None:
        if self.settled:
            return
        self._repo.db.rollback()
        self._repo.delete(self._record.id)


class IdempotencyService:
    def __init__(self, db):
        self.repo = IdempotencyRepository(db)

    @staticmethod
    def fingerprint(payload: object) -> str:
        canonical = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def start(
        self,
        *,
        actor_user_id: str,
        endpoint: str,
        method: str,
        idempotency_key: str,
        request_hash: str,
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        """Claim the key, or return the stored outcome to replay.

        Exactly one of the returned pair is set.
        """
        scope = asdict(IdempotencyScope(actor_user_id, endpoint, method, idempotency_key))
        existing = self.repo.get_by_key(**scope)
        if existing is None:
            try:
                claimed = self.repo.create(
                    IdempotencyRecord(**scope, request_hash=request_hash, state=STATE_IN_PROGRESS)
                )
            except IntegrityError:
                # A concurrent request claimed the key between lookup and insert.
                self.repo.db.rollback()
                existing = self.repo.get_by_key(**scope)
            else:
                return IdempotencyContext(claimed, self.repo), None
        return None, self._replay(existing, request_hash)

    @staticmethod
    def _replay(existing: IdempotencyRecord | None, request_hash: str) -> IdempotencyReplay:
        if existing is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.request_hash != request_hash:
            raise AppError(ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD)
        if existing.state == STATE_IN_PROGRESS or existing.status_code is None or existing.response_body is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        return IdempotencyReplay(status_code=existing.status_code, response_body=json.loads(existing.response_body))


def extract_idempotency_key(headers) -> str | None:
    key = (headers.get(IDEMPOTENCY_HEADER) or "").strip()
    return key or None
