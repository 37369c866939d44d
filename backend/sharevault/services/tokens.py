import logging
import secrets
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from sharevault import crud, schemas
from sharevault.core.clock import Clock, utcnow
from sharevault.core.config import MAX_DOWNLOADS_CAP, MAX_TTL_SECONDS, MIN_TOKEN_BYTES, settings
from sharevault.core.errors import DuplicateToken, InvalidPolicy, TokenCollision
from sharevault.core.logging import redact_token
from sharevault.core.metrics import LINKS_ISSUED_TOTAL
from sharevault.models.file import FileMeta
from sharevault.models.share import ShareLink

logger = logging.getLogger(__name__)


class TokenGenerator:
    """Creates share links with random, unguessable tokens."""

    def __init__(
        self,
        db: Session,
        *,
        clock: Clock = utcnow,
        token_bytes: Optional[int] = None,
        token_factory: Optional[Callable[[], str]] = None,
    ):
        self.db = db
        self.clock = clock
        self.token_bytes = max(token_bytes or settings.token_bytes, MIN_TOKEN_BYTES)
        self.token_factory = token_factory or self.new_token

    def new_token(self) -> str:
        # Never derived from file id or time
        return secrets.token_urlsafe(self.token_bytes)

    def issue(
        self,
        file: FileMeta,
        *,
        ttl: Optional[timedelta] = None,
        max_downloads: Optional[int] = None,
    ) -> ShareLink:
        if max_downloads is not None and not 1 <= max_downloads <= MAX_DOWNLOADS_CAP:
            raise InvalidPolicy(f"max_downloads must be between 1 and {MAX_DOWNLOADS_CAP}")
        if ttl is not None and abs(ttl.total_seconds()) > MAX_TTL_SECONDS:
            raise InvalidPolicy(f"ttl must be within {MAX_TTL_SECONDS} seconds")

        now = self.clock()
        try:
            expires_at = now + ttl if ttl is not None else None
        except OverflowError as e:
            raise InvalidPolicy("ttl puts the expiry outside the supported date range") from e

        # A duplicate token gets exactly one retry with a fresh one
        for attempt in range(2):
            token = self.token_factory()
            try:
                link = crud.share_link.create(
                    self.db,
                    obj_in=schemas.ShareLinkRecord(
                        token=token,
                        file_id=file.id,
                        created_at=now,
                        expires_at=expires_at,
                        max_downloads=max_downloads,
                    ),
                )
            except DuplicateToken:
                logger.warning("Token collision on issue for file %s (attempt %d)", file.id, attempt + 1)
                continue
            LINKS_ISSUED_TOTAL.inc()
            logger.info(
                "Issued share link %s for file %s token=%s expires_at=%s max_downloads=%s",
                link.id, file.id, redact_token(token), expires_at, max_downloads,
            )
            return link
        raise TokenCollision("could not store a unique share token")
