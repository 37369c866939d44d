from typing import Any, List

from fastapi import APIRouter, Depends

from sharevault import schemas
from sharevault.api import deps
from sharevault.core.status import LinkStatus
from sharevault.services.share_service import ShareLinkService

router = APIRouter()


@router.post("", response_model=schemas.ShareLinkIssued, status_code=201)
def create_share(
    *,
    service: ShareLinkService = Depends(deps.get_share_service),
    share_in: schemas.ShareLinkCreate,
) -> Any:
    """
    Issue a share link for a stored file.
    """
    issued = service.issue_link(
        share_in.file_id,
        ttl_seconds=share_in.ttl_seconds,
        max_downloads=share_in.max_downloads,
    )
    link = issued.share_link
    return {
        "id": link.id,
        "token": issued.token,
        "url": issued.url,
        "expires_at": link.expires_at,
        "max_downloads": link.max_downloads,
    }


@router.get("/{token}", response_model=schemas.LinkStatusInfo)
def get_share_status(
    token: str,
    service: ShareLinkService = Depends(deps.get_share_service),
) -> Any:
    """
    Link preview. Always answers 200; ``status`` says whether the link is usable.
    """
    view = service.get_link_status(token)
    if view.status in (LinkStatus.NOT_FOUND, LinkStatus.REVOKED):
        # Anonymous callers cannot tell a revoked link from a wrong token
        return {"status": LinkStatus.NOT_FOUND}
    return {
        "status": view.status,
        "filename": view.filename,
        "size_bytes": view.size_bytes,
        "content_type": view.content_type,
        "expires_at": view.expires_at,
        "max_downloads": view.max_downloads,
        "current_downloads": view.current_downloads,
        "remaining_downloads": view.remaining_downloads,
    }


@router.post("/{link_id}/revoke", response_model=schemas.ShareLink)
def revoke_share(
    link_id: int,
    service: ShareLinkService = Depends(deps.get_share_service),
) -> Any:
    return service.revoke_link(link_id)


@router.get("/id/{link_id}/downloads", response_model=List[schemas.DownloadLog])
def read_share_downloads(
    link_id: int,
    service: ShareLinkService = Depends(deps.get_share_service),
) -> Any:
    """
    Audit trail of a link's downloads (management view).
    """
    return service.list_downloads(link_id)
