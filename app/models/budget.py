import uuid
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db import Base, GUID


class Budget(Base):
    __tablename__ = "monthly_budgets"
    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", name="uq_monthly_budgets_user_period"),
    )

    id = Column(GUID, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    user_id = Column(GUID, nullable=False, index=True)
    # Kept after generation so template edits can still reach this budget
    template_id = Column(GUID, ForeignKey('templates.id', ondelete='SET NULL'), nullable=True, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    description = Column(String, nullable=True)
    ending_balance = Column(Numeric(precision=12, scale=2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    budget_lines = relationship("BudgetLine", backref="budget", cascade="all, delete-orphan")
    transactions = relationship("Transaction", backref="budget", cascade="all, delete-orphan")
