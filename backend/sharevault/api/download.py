from typing import Any, Callable, Optional
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from sharevault.api import deps
from sharevault.services.ledger import AuditTrail
from sharevault.services.share_service import ShareLinkService

router = APIRouter()


def _flush_pending_audit(session_factory: Callable[[], Session], trail: AuditTrail) -> None:
    if not trail.pending:
        return
    db = session_factory()
    try:
        trail.flush(db)
    finally:
        db.close()


@router.get("/download/{token}")
def download_shared_file(
    token: str,
    request: Request,
    background_tasks: BackgroundTasks,
    service: ShareLinkService = Depends(deps.get_share_service),
    session_factory: Callable[[], Session] = Depends(deps.get_session_factory),
    trail: AuditTrail = Depends(deps.get_audit_trail),
    user_agent: Optional[str] = Header(None),
) -> Any:
    """
    Spend one download allowance and stream the file.
    """
    source_address = request.client.host if request.client else None
    stream = service.request_download(token, user_agent=user_agent, source_address=source_address)

    # The download log entry queued by consume is written after the response
    background_tasks.add_task(_flush_pending_audit, session_factory, trail)

    # URL encode the filename to handle non-ASCII characters
    encoded_filename = quote(stream.filename)
    headers = {
        "Content-Disposition": f"attachment; filename*=UTF-8''{encoded_filename}",
        "Content-Length": str(stream.size_bytes),
        "Cache-Control": "no-store",
    }
    if stream.consumed.remaining_downloads is not None:
        headers["X-Remaining-Downloads"] = str(stream.consumed.remaining_downloads)
    return StreamingResponse(
        stream.iter_chunks(),
        media_type=stream.content_type,
        headers=headers,
    )
