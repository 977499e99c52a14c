import uuid

from sqlalchemy import Column, String, DateTime, func
from sqlalchemy.orm import declarative_base

from ..utils.time_helper import utcnow

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


class BaseModel(Base):
    __abstract__ = True

    id = Column(String(32), primary_key=True, default=new_id)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, server_default=func.now())
