from sqlalchemy import Column, Integer, String, ForeignKey
from castgrid.db import Base


class MediaBox(Base):
    __tablename__ = "media_box"
    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False, default="")


class MediaBoxItem(Base):
    # Soft reference: media_id is not a foreign key so deleted items leave
    # dangling memberships behind, the same as the JSON store.
    __tablename__ = "media_box_item"
    media_box_id = Column(String(64), ForeignKey("media_box.id"), primary_key=True)
    media_id = Column(String(64), primary_key=True)
    order = Column(Integer, nullable=False, default=0)
