import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db import Base, GUID


class Template(Base):
    __tablename__ = "templates"

    id = Column(GUID, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    user_id = Column(GUID, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationship
    lines = relationship("TemplateLine", backref="template", cascade="all, delete-orphan")


class TemplateLine(Base):
    __tablename__ = "template_lines"

    id = Column(GUID, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    template_id = Column(GUID, ForeignKey('templates.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String, nullable=False)
    amount = Column(Numeric(precision=12, scale=2), nullable=False)
    kind = Column(String, nullable=False)
    recurrence = Column(String, nullable=False, default="fixed")
    description = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
