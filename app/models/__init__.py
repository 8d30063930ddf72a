from app.db import Base
from app.models.template import Template, TemplateLine
from app.models.budget import Budget
from app.models.budget_line import BudgetLine
from app.models.transaction import Transaction

__all__ = [
    "Base",
    "Template",
    "TemplateLine",
    "Budget",
    "BudgetLine",
    "Transaction",
]
