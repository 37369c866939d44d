import hashlib
import logging
import mimetypes
import re
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from sharevault import crud, schemas
from sharevault.api import deps
from sharevault.core.config import MAX_DOWNLOADS_CAP, MAX_TTL_SECONDS, settings
from sharevault.core.errors import FileNotFound
from sharevault.services.share_service import ShareLinkService
from sharevault.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

router = APIRouter()


def is_filename_valid(filename: str) -> bool:
    """
    Checks if a filename contains illegal characters for Windows, Linux, and macOS.
    """
    if not filename or re.search(r'[<>:"/\\|?*\x00-\x1f]', filename):
        return False
    return True


@router.post("", response_model=schemas.FileUploadResult, status_code=201)
async def upload_file(
        *,
        db: Session = Depends(deps.get_db),
        blob_store: BlobStore = Depends(deps.get_blob_store),
        service: ShareLinkService = Depends(deps.get_share_service),
        file: UploadFile = File(...),
        issue_link: bool = Form(True),
        ttl_seconds: Optional[int] = Form(None, ge=-MAX_TTL_SECONDS, le=MAX_TTL_SECONDS),
        max_downloads: Optional[int] = Form(None, ge=1, le=MAX_DOWNLOADS_CAP),
) -> Any:
    """
    Store an (already encrypted) upload and optionally issue a share link for it.
    """
    if not is_filename_valid(file.filename):
        raise HTTPException(status_code=400, detail=f'Filename "{file.filename}" contains illegal characters')

    data = bytearray()
    while content := await file.read(1024 * 1024):
        data.extend(content)
        if len(data) > settings.MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=413, detail="File too large")
    data = bytes(data)

    storage_path = blob_store.put(data)
    content_type = file.content_type
    if not content_type or content_type == "application/octet-stream":
        content_type = mimetypes.guess_type(file.filename)[0] or "application/octet-stream"

    file_meta = crud.file.create(
        db,
        obj_in=schemas.FileMetaCreate(
            original_filename=file.filename,
            size_bytes=len(data),
            content_type=content_type,
            file_hash=hashlib.sha256(data).hexdigest(),
            storage_path=storage_path,
        ),
    )
    logger.info("Stored file %s (%d bytes)", file_meta.id, file_meta.size_bytes)

    result = {"file": file_meta}
    if issue_link:
        issued = service.issue_link(file_meta.id, ttl_seconds=ttl_seconds, max_downloads=max_downloads)
        result.update(token=issued.token, url=issued.url)
    return result


@router.get("/{file_id}", response_model=schemas.FileMeta)
def read_file(
        file_id: int,
        db: Session = Depends(deps.get_db),
) -> Any:
    file_meta = crud.file.get(db, id=file_id)
    if not file_meta:
        raise FileNotFound(file_id)
    return file_meta


@router.get("/{file_id}/shares", response_model=List[schemas.ShareLink])
def read_file_shares(
        file_id: int,
        service: ShareLinkService = Depends(deps.get_share_service),
) -> Any:
    """
    List every link issued for a file (management view).
    """
    return service.list_links(file_id)
