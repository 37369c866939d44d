import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Optional

from sqlalchemy.orm import Session

from sharevault import crud
from sharevault.core.clock import Clock, utcnow
from sharevault.core.errors import LedgerError, LinkDead, PersistenceError
from sharevault.core.logging import redact_token
from sharevault.core.metrics import AUDIT_APPEND_FAILURES_TOTAL
from sharevault.core.status import LinkStatus
from sharevault.services.authorizer import DownloadAuthorizer, is_well_formed_token, remaining_downloads

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsumeResult:
    share_link_id: int
    file_id: int
    # Authoritative count after this download; callers refresh from it
    current_downloads: int
    max_downloads: Optional[int]

    @property
    def remaining_downloads(self) -> Optional[int]:
        return remaining_downloads(self.max_downloads, self.current_downloads)


@dataclass(frozen=True)
class AuditEntry:
    share_link_id: int
    timestamp: datetime
    user_agent: Optional[str] = None
    source_address: Optional[str] = None


class AuditTrail:
    """
    Download log entries waiting to be written.

    ``submit`` only queues, so the download path never waits on the log
    table. ``flush`` writes queued entries in order; a failed write is
    counted and stays queued for the next flush. When the queue is full
    the oldest entry is dropped and counted.
    """

    def __init__(self, max_pending: int = 10000):
        self.max_pending = max_pending
        self._pending: Deque[AuditEntry] = deque()
        self._lock = threading.Lock()

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def _drop_overflow(self) -> None:
        # Caller holds the lock
        while len(self._pending) > self.max_pending:
            dropped = self._pending.popleft()
            AUDIT_APPEND_FAILURES_TOTAL.labels(reason="dropped").inc()
            logger.error(
                "Download log queue full (%d), dropped entry for link %s at %s",
                self.max_pending, dropped.share_link_id, dropped.timestamp,
            )

    def _write(self, db: Session, entry: AuditEntry) -> None:
        crud.download_log.append(
            db,
            share_link_id=entry.share_link_id,
            timestamp=entry.timestamp,
            user_agent=entry.user_agent,
            source_address=entry.source_address,
        )

    def submit(self, entry: AuditEntry) -> None:
        with self._lock:
            self._pending.append(entry)
            self._drop_overflow()

    def flush(self, db: Session) -> int:
        """Write queued entries; returns how many were written."""
        with self._lock:
            entries = list(self._pending)
            self._pending.clear()

        written = 0
        for index, entry in enumerate(entries):
            try:
                self._write(db, entry)
            except PersistenceError as e:
                AUDIT_APPEND_FAILURES_TOTAL.labels(reason="append_failed").inc()
                logger.warning("Download log append failed, %d entries still pending: %s", len(entries) - index, e)
                with self._lock:
                    self._pending.extendleft(reversed(entries[index:]))
                    self._drop_overflow()
                break
            written += 1
        if written:
            logger.debug("Wrote %d download log entries", written)
        return written


audit_trail = AuditTrail()


class DownloadLedger:
    def __init__(
        self,
        db: Session,
        *,
        authorizer: Optional[DownloadAuthorizer] = None,
        clock: Clock = utcnow,
        audit: AuditTrail = audit_trail,
    ):
        self.db = db
        self.clock = clock
        self.authorizer = authorizer or DownloadAuthorizer(db, clock=clock)
        self.audit = audit

    def consume(
        self,
        token: str,
        *,
        user_agent: Optional[str] = None,
        source_address: Optional[str] = None,
    ) -> ConsumeResult:
        """
        Atomically spend one download allowance for ``token``.

        Raises ``LedgerError`` when nothing was spent. Its reason is derived
        by re-validating the link after the fact, so it names the precise
        cause: revoked, expired or limit reached while this request was in
        flight, or ``LEDGER_CONFLICT`` if the link still looks live.

        The download log entry is queued on the audit trail, not written;
        whoever serves the download flushes it afterwards.
        """
        if not is_well_formed_token(token):
            raise LedgerError(LinkStatus.NOT_FOUND)

        now = self.clock()
        row = crud.share_link.consume(self.db, token=token, now=now)
        if row is None:
            raise self._refusal(token)

        result = ConsumeResult(
            share_link_id=row.id,
            file_id=row.file_id,
            current_downloads=row.current_downloads,
            max_downloads=row.max_downloads,
        )
        logger.info(
            "Consumed download on link %s token=%s count=%s/%s",
            row.id, redact_token(token), row.current_downloads,
            row.max_downloads if row.max_downloads is not None else "unlimited",
        )
        self.audit.submit(
            AuditEntry(
                share_link_id=row.id,
                timestamp=now,
                user_agent=user_agent,
                source_address=source_address,
            )
        )
        return result

    def _refusal(self, token: str) -> LedgerError:
        try:
            view = self.authorizer.validate(token)
        except LinkDead as dead:
            logger.info("Consume refused on token=%s: %s", redact_token(token), dead.status.value)
            return LedgerError(dead.status, dead.share_link_id)
        logger.warning("Consume refused on token=%s though the link validates", redact_token(token))
        return LedgerError(LinkStatus.LEDGER_CONFLICT, view.share_link_id)
