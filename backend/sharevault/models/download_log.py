from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sharevault.db.base_class import Base
from sharevault.core.clock import utcnow


class DownloadLog(Base):
    """Append-only audit row, one per spent download allowance."""
    __tablename__ = "download_log"

    id = Column(Integer, primary_key=True, index=True)
    share_link_id = Column(Integer, ForeignKey("share_link.id"), nullable=False, index=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    user_agent = Column(String(512), nullable=True)
    source_address = Column(String(64), nullable=True)
