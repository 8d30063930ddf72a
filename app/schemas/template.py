"""
Pydantic schemas for templates, template lines and bulk line operations.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.common import TransactionKind, TransactionRecurrence


class TemplateRead(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    is_default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TemplateLineRead(BaseModel):
    id: str
    template_id: str
    name: str
    amount: Decimal
    kind: TransactionKind
    recurrence: TransactionRecurrence = TransactionRecurrence.FIXED
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TemplateLineCreate(BaseModel):
    """New template line, template id comes from the path."""
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    kind: TransactionKind
    recurrence: TransactionRecurrence = TransactionRecurrence.FIXED
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v


class TemplateLineUpdate(TemplateLineCreate):
    """Full replacement of an existing template line's shape."""
    id: str


class TemplateLinesBulkOperations(BaseModel):
    create: List[TemplateLineCreate] = Field(default_factory=list)
    update: List[TemplateLineUpdate] = Field(default_factory=list)
    delete: List[str] = Field(default_factory=list)
    propagate_to_budgets: bool = False

    @model_validator(mode="after")
    def check_ids(self):
        update_ids = [line.id for line in self.update]
        if len(set(update_ids)) != len(update_ids):
            raise ValueError("duplicate template line id in update")
        if len(set(self.delete)) != len(self.delete):
            raise ValueError("duplicate template line id in delete")
        overlap = set(update_ids) & set(self.delete)
        if overlap:
            raise ValueError(f"template lines both updated and deleted: {sorted(overlap)}")
        return self

    def is_empty(self) -> bool:
        return not (self.create or self.update or self.delete)

    class Config:
        json_schema_extra = {
            "example": {
                "create": [{"name": "Gym", "amount": "45.00", "kind": "expense", "recurrence": "fixed"}],
                "update": [{"id": "line_123", "name": "Rent", "amount": "1600.00", "kind": "expense", "recurrence": "fixed"}],
                "delete": ["line_456"],
                "propagate_to_budgets": True,
            }
        }


class PropagationMode(str, Enum):
    TEMPLATE_ONLY = "template-only"
    PROPAGATE = "propagate"


class RecalculationFailure(BaseModel):
    budget_id: str
    error: str


class PropagationSummary(BaseModel):
    mode: PropagationMode
    affected_budget_ids: List[str] = Field(default_factory=list)
    recalculation_failures: List[RecalculationFailure] = Field(default_factory=list)


class TemplateLinesBulkOperationsResponse(BaseModel):
    created: List[TemplateLineRead]
    updated: List[TemplateLineRead]
    deleted: List[str]
    propagation: PropagationSummary


class PropagationOperations(BaseModel):
    """
    Template line changes already applied at template level, to be mirrored
    into future budgets. Created and updated lines carry their ids.
    """
    create: List[TemplateLineRead] = Field(default_factory=list)
    update: List[TemplateLineRead] = Field(default_factory=list)
    delete: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_ids(self):
        update_ids = [line.id for line in self.update]
        if len(set(update_ids)) != len(update_ids) or len(set(self.delete)) != len(self.delete):
            raise ValueError("duplicate template line id")
        if set(update_ids) & set(self.delete):
            raise ValueError("template lines both updated and deleted")
        return self

    def is_empty(self) -> bool:
        return not (self.create or self.update or self.delete)
