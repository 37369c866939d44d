import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Iterator, List, Optional, TypeVar

from sqlalchemy.orm import Session

from sharevault import crud
from sharevault.core.clock import Clock, utcnow
from sharevault.core.config import MAX_TTL_SECONDS, settings
from sharevault.core.errors import (
    BlobNotFound,
    FileNotFound,
    InvalidPolicy,
    LedgerError,
    LinkDead,
    PersistenceError,
    ShareLinkIdNotFound,
    StorageFailure,
    TokenCollision,
)
from sharevault.core.logging import redact_token
from sharevault.core.metrics import DOWNLOAD_DECISIONS_TOTAL
from sharevault.core.status import LinkStatus
from sharevault.models.download_log import DownloadLog
from sharevault.models.share import ShareLink
from sharevault.services.authorizer import DownloadAuthorizer, LinkStatusView
from sharevault.services.ledger import AuditTrail, ConsumeResult, DownloadLedger, audit_trail
from sharevault.services.tokens import TokenGenerator
from sharevault.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class IssuedLink:
    token: str
    url: str
    share_link: ShareLink


@dataclass(frozen=True)
class DownloadStream:
    filename: str
    content_type: str
    content: bytes
    consumed: ConsumeResult

    @property
    def size_bytes(self) -> int:
        return len(self.content)

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        for offset in range(0, len(self.content), chunk_size):
            yield self.content[offset:offset + chunk_size]


def build_share_url(token: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.BASE_URL).rstrip("/")
    return f"{base}/download/{token}"


class ShareLinkService:
    """Entry points for issuing links and serving downloads through them."""

    def __init__(
        self,
        db: Session,
        blob_store: BlobStore,
        *,
        clock: Clock = utcnow,
        retry_attempts: Optional[int] = None,
        base_url: Optional[str] = None,
        audit: AuditTrail = audit_trail,
        token_generator: Optional[TokenGenerator] = None,
    ):
        self.db = db
        self.blob_store = blob_store
        self.clock = clock
        self.retry_attempts = max(1, retry_attempts or settings.TRANSIENT_RETRY_ATTEMPTS)
        self.base_url = base_url
        self.authorizer = DownloadAuthorizer(db, clock=clock)
        self.ledger = DownloadLedger(db, authorizer=self.authorizer, clock=clock, audit=audit)
        self.token_generator = token_generator or TokenGenerator(db, clock=clock)

    def _with_retries(self, operation: str, fn: Callable[[], T]) -> T:
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return fn()
            except TokenCollision:
                # Already retried where the token was generated
                raise
            except PersistenceError as e:
                if attempt == self.retry_attempts:
                    logger.error("%s failed after %d attempts: %s", operation, attempt, e)
                    raise
                logger.warning("%s failed (attempt %d/%d), retrying: %s", operation, attempt, self.retry_attempts, e)

    def issue_link(
        self,
        file_id: int,
        *,
        ttl_seconds: Optional[int] = None,
        max_downloads: Optional[int] = None,
    ) -> IssuedLink:
        file = self._with_retries("file lookup", lambda: crud.file.get(self.db, id=file_id))
        if file is None:
            raise FileNotFound(file_id)

        if ttl_seconds is not None and abs(ttl_seconds) > MAX_TTL_SECONDS:
            raise InvalidPolicy(f"ttl_seconds must be within {MAX_TTL_SECONDS}")
        ttl = timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None
        link = self._with_retries(
            "link issue",
            lambda: self.token_generator.issue(file, ttl=ttl, max_downloads=max_downloads),
        )
        return IssuedLink(token=link.token, url=build_share_url(link.token, self.base_url), share_link=link)

    def get_link_status(self, token: str) -> LinkStatusView:
        return self._with_retries("link status", lambda: self.authorizer.status(token))

    def request_download(
        self,
        token: str,
        *,
        user_agent: Optional[str] = None,
        source_address: Optional[str] = None,
    ) -> DownloadStream:
        """
        Validate, consume, then fetch the bytes.

        Once consume succeeds the allowance is spent. A blob failure after
        that point raises ``StorageFailure`` and the count is not given back.
        """
        try:
            view = self._with_retries("validate", lambda: self.authorizer.validate(token))
        except LinkDead as dead:
            DOWNLOAD_DECISIONS_TOTAL.labels(outcome=dead.status.value).inc()
            logger.info("Download refused at validation token=%s: %s", redact_token(token), dead.status.value)
            raise

        # A store error rolls the UPDATE back, so retrying it cannot double-spend
        try:
            consumed = self._with_retries(
                "consume",
                lambda: self.ledger.consume(token, user_agent=user_agent, source_address=source_address),
            )
        except LedgerError as e:
            DOWNLOAD_DECISIONS_TOTAL.labels(outcome=e.reason.value).inc()
            raise
        DOWNLOAD_DECISIONS_TOTAL.labels(outcome=LinkStatus.ACTIVE.value).inc()

        file = self._with_retries("file lookup", lambda: crud.file.get(self.db, id=consumed.file_id))
        if file is None:
            raise StorageFailure(f"file {consumed.file_id} behind link {consumed.share_link_id} is gone")
        content = self._fetch_blob(file.storage_path, consumed.share_link_id)
        return DownloadStream(
            filename=view.filename,
            content_type=view.content_type,
            content=content,
            consumed=consumed,
        )

    def _fetch_blob(self, storage_path: str, share_link_id: int) -> bytes:
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return self.blob_store.get(storage_path)
            except BlobNotFound as e:
                logger.error("Blob missing for link %s after consume: %s", share_link_id, e)
                raise StorageFailure(str(e)) from e
            except OSError as e:
                if attempt == self.retry_attempts:
                    logger.error("Blob fetch for link %s failed after %d attempts: %s", share_link_id, attempt, e)
                    raise StorageFailure(str(e)) from e
                logger.warning("Blob fetch for link %s failed (attempt %d), retrying: %s", share_link_id, attempt, e)

    def flush_audit(self) -> int:
        """Write download log entries queued by earlier downloads."""
        return self.ledger.audit.flush(self.db)

    def revoke_link(self, link_id: int) -> ShareLink:
        link = self._with_retries("revoke", lambda: crud.share_link.revoke(self.db, id=link_id))
        if link is None:
            raise ShareLinkIdNotFound(link_id)
        logger.info("Revoked share link %s", link_id)
        return link

    def list_links(self, file_id: int) -> List[ShareLink]:
        file = self._with_retries("file lookup", lambda: crud.file.get(self.db, id=file_id))
        if file is None:
            raise FileNotFound(file_id)
        return self._with_retries("link listing", lambda: crud.share_link.get_multi_by_file(self.db, file_id=file_id))

    def list_downloads(self, link_id: int) -> List[DownloadLog]:
        link = self._with_retries("link lookup", lambda: crud.share_link.get(self.db, id=link_id))
        if link is None:
            raise ShareLinkIdNotFound(link_id)
        return self._with_retries(
            "download log listing",
            lambda: crud.download_log.get_by_share_link(self.db, share_link_id=link_id),
        )
