"""
Error taxonomy for share links and downloads.

``LinkDead`` and its subclasses carry the precise reason a link was refused.
Those reasons are for logs and for the issuing party; the HTTP layer decides
how much of them an anonymous downloader gets to see.
"""
from sharevault.core.status import LinkStatus


class ShareVaultError(Exception):
    """Base class for all errors raised by the share-link core."""


class LinkDead(ShareVaultError):
    status: LinkStatus = LinkStatus.NOT_FOUND

    def __init__(self, share_link_id: int = None):
        self.share_link_id = share_link_id
        super().__init__(self.status.value)


class LinkNotFound(LinkDead):
    status = LinkStatus.NOT_FOUND


class LinkRevoked(LinkDead):
    status = LinkStatus.REVOKED


class LinkExpired(LinkDead):
    status = LinkStatus.EXPIRED


class LinkLimitReached(LinkDead):
    status = LinkStatus.LIMIT_REACHED


_DEAD_BY_STATUS = {
    LinkStatus.NOT_FOUND: LinkNotFound,
    LinkStatus.REVOKED: LinkRevoked,
    LinkStatus.EXPIRED: LinkExpired,
    LinkStatus.LIMIT_REACHED: LinkLimitReached,
}


def link_dead(status: LinkStatus, share_link_id: int = None) -> LinkDead:
    return _DEAD_BY_STATUS[status](share_link_id)


class LedgerError(ShareVaultError):
    """Consume changed nothing; ``reason`` says why."""

    def __init__(self, reason: LinkStatus, share_link_id: int = None):
        self.reason = reason
        self.share_link_id = share_link_id
        super().__init__(f"consume refused: {reason.value}")


class PersistenceError(ShareVaultError):
    """The share-link store was unavailable or a write failed."""


class StorageFailure(ShareVaultError):
    """Blob fetch failed after the download allowance was spent."""


class BlobNotFound(ShareVaultError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"blob not found: {path}")


class FileNotFound(ShareVaultError):
    def __init__(self, file_id: int):
        self.file_id = file_id
        super().__init__(f"file {file_id} not found")


class ShareLinkIdNotFound(ShareVaultError):
    def __init__(self, link_id: int):
        self.link_id = link_id
        super().__init__(f"share link {link_id} not found")


class InvalidPolicy(ShareVaultError):
    pass


class DuplicateToken(PersistenceError):
    """Insert hit the unique index on token."""


class TokenCollision(PersistenceError):
    """Fresh tokens kept colliding; retrying at a higher level will not help."""
