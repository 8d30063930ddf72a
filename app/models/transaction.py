import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric
from sqlalchemy.sql import func
from app.db import Base, GUID


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(GUID, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    budget_id = Column(GUID, ForeignKey('monthly_budgets.id', ondelete='CASCADE'), nullable=False, index=True)
    # NULL means a free transaction, otherwise allocated to an envelope
    budget_line_id = Column(GUID, ForeignKey('budget_lines.id', ondelete='SET NULL'), nullable=True, index=True)
    name = Column(String, nullable=False)
    amount = Column(Numeric(precision=12, scale=2), nullable=False)
    kind = Column(String, nullable=False)
    transaction_date = Column(DateTime(timezone=True), nullable=True)
    category = Column(String, nullable=True)
    checked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
