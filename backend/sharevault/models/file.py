from sqlalchemy import Column, BigInteger, Integer, String, DateTime
from sharevault.db.base_class import Base
from sharevault.core.clock import utcnow


class FileMeta(Base):
    """Uploaded file; never mutated after creation."""
    __tablename__ = "file_meta"

    id = Column(Integer, primary_key=True, index=True)
    original_filename = Column(String(255), nullable=False)
    size_bytes = Column(BigInteger, nullable=False)
    content_type = Column(String(255), nullable=False, default="application/octet-stream")
    file_hash = Column(String(64), index=True, nullable=False)  # sha256 of stored bytes
    storage_path = Column(String(512), nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
