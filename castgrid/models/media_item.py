from datetime import datetime
from sqlalchemy import Column, String, Integer, BigInteger, Boolean, DateTime
from castgrid.db import Base


class MediaItem(Base):
    __tablename__ = "media_item"
    id = Column(String(64), primary_key=True)
    type = Column(String, nullable=False, default="image")
    filename = Column(String, nullable=False)
    url = Column(String, nullable=False, default="")
    duration = Column(Integer, nullable=False, default=10)
    file_size = Column(BigInteger, nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow)
    is_local = Column(Boolean, default=False)
    download_status = Column(String, default="pending")
