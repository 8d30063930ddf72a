"""
Entity store interface.

The propagation engine and the balance calculator only talk to this
interface, so the persistence technology can be swapped (SQLAlchemy in
production, an in-memory fake in tests).
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import AsyncContextManager, List, Optional, Sequence

from app.schemas.budget import BudgetRead
from app.schemas.budget_line import BudgetLineRead
from app.schemas.template import TemplateLineCreate, TemplateLineRead, TemplateLineUpdate, TemplateRead
from app.schemas.transaction import TransactionRead


class EntityStore(ABC):
    """Per-entity reads and writes plus atomic multi-entity writes."""

    # Templates

    @abstractmethod
    async def get_template(self, template_id: str) -> Optional[TemplateRead]:
        pass

    @abstractmethod
    async def list_template_lines(self, template_id: str) -> List[TemplateLineRead]:
        pass

    @abstractmethod
    async def create_template_lines(
        self, template_id: str, lines: Sequence[TemplateLineCreate]
    ) -> List[TemplateLineRead]:
        pass

    @abstractmethod
    async def update_template_lines(
        self, template_id: str, lines: Sequence[TemplateLineUpdate]
    ) -> List[TemplateLineRead]:
        pass

    @abstractmethod
    async def delete_template_lines(self, template_id: str, line_ids: Sequence[str]) -> int:
        """Delete template lines only, mirrored budget lines are left alone."""
        pass

    # Budgets

    @abstractmethod
    async def get_budget(self, budget_id: str) -> Optional[BudgetRead]:
        pass

    @abstractmethod
    async def get_budgets(self, budget_ids: Sequence[str]) -> List[BudgetRead]:
        pass

    @abstractmethod
    async def list_user_budgets(self, user_id: str) -> List[BudgetRead]:
        pass

    @abstractmethod
    async def find_future_budgets(
        self, template_id: str, user_id: str, year: int, month: int
    ) -> List[BudgetRead]:
        """Budgets linked to the template at (year, month) or later."""
        pass

    @abstractmethod
    async def get_previous_budget(self, user_id: str, year: int, month: int) -> Optional[BudgetRead]:
        """Latest budget of the user strictly before (year, month)."""
        pass

    @abstractmethod
    async def persist_ending_balance(self, budget_id: str, ending_balance: Decimal) -> None:
        pass

    # Budget contents

    @abstractmethod
    async def list_budget_lines(self, budget_id: str) -> List[BudgetLineRead]:
        pass

    @abstractmethod
    async def list_transactions(self, budget_id: str) -> List[TransactionRead]:
        pass

    # Atomic write

    @abstractmethod
    def atomic(self) -> AsyncContextManager[None]:
        """
        Async context manager grouping every write made inside it into one
        unit: all of them land or, when the block raises, none do. Writes
        that are atomic on their own join the enclosing unit.
        """
        pass

    @abstractmethod
    async def apply_template_line_operations(
        self,
        template_id: str,
        budget_ids: Sequence[str],
        delete_ids: Sequence[str],
        updated_lines: Sequence[TemplateLineRead],
        created_lines: Sequence[TemplateLineRead],
    ) -> List[str]:
        """
        Apply template line deletes, updates and creates to the template and
        its mirrored budget lines in one transaction.

        Returns:
            Ids of the budgets actually mutated
        """
        pass
