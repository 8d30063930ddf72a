import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Numeric
from sqlalchemy.sql import func
from app.db import Base, GUID


class BudgetLine(Base):
    """An envelope: a planned allocation inside one monthly budget."""
    __tablename__ = "budget_lines"

    id = Column(GUID, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    budget_id = Column(GUID, ForeignKey('monthly_budgets.id', ondelete='CASCADE'), nullable=False, index=True)
    # Weak back-reference used only for propagation matching
    template_line_id = Column(GUID, ForeignKey('template_lines.id', ondelete='SET NULL'), nullable=True, index=True)
    savings_goal_id = Column(GUID, nullable=True)
    name = Column(String, nullable=False)
    amount = Column(Numeric(precision=12, scale=2), nullable=False)
    kind = Column(String, nullable=False)
    recurrence = Column(String, nullable=False, default="fixed")
    is_manually_adjusted = Column(Boolean, nullable=False, default=False)
    checked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
