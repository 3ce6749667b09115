from sqlalchemy import Column, String
from castgrid.db import Base


class Device(Base):
    __tablename__ = "device"
    id = Column(String(64), primary_key=True)
    location = Column(String, default="")
