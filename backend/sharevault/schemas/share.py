from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime

from sharevault.core.config import MAX_DOWNLOADS_CAP, MAX_TTL_SECONDS
from sharevault.core.status import LinkStatus


class ShareLinkCreate(BaseModel):
    file_id: int
    # Negative values issue an already-expired link
    ttl_seconds: Optional[int] = Field(None, ge=-MAX_TTL_SECONDS, le=MAX_TTL_SECONDS)
    max_downloads: Optional[int] = Field(None, ge=1, le=MAX_DOWNLOADS_CAP)


# Row as stored; token and timestamps are filled in by the issuer
class ShareLinkRecord(BaseModel):
    token: str
    file_id: int
    created_at: datetime
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None


class ShareLinkIssued(BaseModel):
    id: int
    token: str
    url: str
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None


# Management view for the issuing party
class ShareLink(BaseModel):
    id: int
    token: str
    file_id: int
    created_at: datetime
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None
    current_downloads: int
    is_active: bool

    class Config:
        from_attributes = True


# Public info for the download page (hide sensitive info)
class LinkStatusInfo(BaseModel):
    status: LinkStatus
    filename: Optional[str] = None
    size_bytes: Optional[int] = None
    content_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None
    current_downloads: Optional[int] = None
    # None means unlimited
    remaining_downloads: Optional[int] = None


class DownloadLog(BaseModel):
    id: int
    share_link_id: int
    timestamp: datetime
    user_agent: Optional[str] = None
    source_address: Optional[str] = None

    class Config:
        from_attributes = True
