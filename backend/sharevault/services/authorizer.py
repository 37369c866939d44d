"""
Read-only evaluation of a share token against its link's policy.

Checks run in a fixed order and the first failing one decides:
unknown token, revoked, expired (``now >= expires_at``), limit reached.
``DownloadAuthorizer.evaluate`` is the only place a ``LinkStatus`` is
computed; everything else asks it.

Validation is advisory. It lets callers skip the ledger and blob store for
links that are obviously dead; the decision that actually spends an
allowance is ``DownloadLedger.consume``.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from sharevault import crud
from sharevault.core.clock import Clock, utcnow
from sharevault.core.errors import link_dead
from sharevault.core.status import LinkStatus
from sharevault.models.share import ShareLink

MAX_TOKEN_LENGTH = 256
_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def is_well_formed_token(token: Optional[str]) -> bool:
    return bool(token) and len(token) <= MAX_TOKEN_LENGTH and _TOKEN_PATTERN.fullmatch(token) is not None


def remaining_downloads(max_downloads: Optional[int], current_downloads: int) -> Optional[int]:
    """None means unlimited."""
    if max_downloads is None:
        return None
    return max(0, max_downloads - current_downloads)


@dataclass(frozen=True)
class AuthorizedView:
    """What a caller may learn about a live link. No storage path."""
    share_link_id: int
    file_id: int
    filename: str
    size_bytes: int
    content_type: str
    expires_at: Optional[datetime]
    max_downloads: Optional[int]
    current_downloads: int
    remaining_downloads: Optional[int]


@dataclass(frozen=True)
class LinkStatusView:
    status: LinkStatus
    share_link_id: Optional[int] = None
    filename: Optional[str] = None
    size_bytes: Optional[int] = None
    content_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None
    current_downloads: Optional[int] = None
    remaining_downloads: Optional[int] = None


class DownloadAuthorizer:
    def __init__(self, db: Session, *, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    @staticmethod
    def evaluate(link: Optional[ShareLink], now: datetime) -> LinkStatus:
        if link is None:
            return LinkStatus.NOT_FOUND
        if not link.is_active:
            return LinkStatus.REVOKED
        if link.expires_at is not None and now >= link.expires_at:
            return LinkStatus.EXPIRED
        if link.max_downloads is not None and link.current_downloads >= link.max_downloads:
            return LinkStatus.LIMIT_REACHED
        return LinkStatus.ACTIVE

    def _lookup(self, token: str) -> Optional[ShareLink]:
        # Malformed tokens never reach the database
        if not is_well_formed_token(token):
            return None
        return crud.share_link.get_by_token(self.db, token=token)

    def validate(self, token: str) -> AuthorizedView:
        """Return the authorized view, or raise the matching ``LinkDead``."""
        link = self._lookup(token)
        status = self.evaluate(link, self.clock())
        if status is not LinkStatus.ACTIVE:
            raise link_dead(status, link.id if link is not None else None)

        file = crud.file.get(self.db, id=link.file_id)
        return AuthorizedView(
            share_link_id=link.id,
            file_id=file.id,
            filename=file.original_filename,
            size_bytes=file.size_bytes,
            content_type=file.content_type,
            expires_at=link.expires_at,
            max_downloads=link.max_downloads,
            current_downloads=link.current_downloads,
            remaining_downloads=remaining_downloads(link.max_downloads, link.current_downloads),
        )

    def status(self, token: str) -> LinkStatusView:
        link = self._lookup(token)
        status = self.evaluate(link, self.clock())
        if link is None:
            return LinkStatusView(status=status)

        file = crud.file.get(self.db, id=link.file_id)
        return LinkStatusView(
            status=status,
            share_link_id=link.id,
            filename=file.original_filename,
            size_bytes=file.size_bytes,
            content_type=file.content_type,
            expires_at=link.expires_at,
            max_downloads=link.max_downloads,
            current_downloads=link.current_downloads,
            remaining_downloads=remaining_downloads(link.max_downloads, link.current_downloads),
        )
