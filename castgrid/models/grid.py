from sqlalchemy import Column, Integer, String, ForeignKey
from castgrid.db import Base

MAX_GRID_POSITIONS = 8


class Grid(Base):
    __tablename__ = "grid"
    id = Column(String(96), primary_key=True)
    device_id = Column(String(64), ForeignKey("device.id"), nullable=False)
    position = Column(Integer, nullable=False)  # 1..8, contiguous per device
    media_box_id = Column(String(64), nullable=False, default="")


def is_valid_position(position: int) -> bool:
    return 1 <= position <= MAX_GRID_POSITIONS
