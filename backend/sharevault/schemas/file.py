from typing import Optional
from pydantic import BaseModel
from datetime import datetime


# Properties to return to client; the storage path is never exposed
class FileMeta(BaseModel):
    id: int
    original_filename: str
    size_bytes: int
    content_type: str
    created_at: datetime

    class Config:
        from_attributes = True


class FileMetaCreate(BaseModel):
    original_filename: str
    size_bytes: int
    content_type: str
    file_hash: str
    storage_path: str


# Response for upload, with the link issued alongside it
class FileUploadResult(BaseModel):
    file: FileMeta
    token: Optional[str] = None
    url: Optional[str] = None
