"""Template, logic rule and answer models.

Templates arrive as JSON documents shaped `{pages: [...], logic: [...]}` with
camelCase keys (`questionId`, `targetId`). Models accept both the wire names
and the snake_case field names. Templates are treated as immutable once
parsed (`frozen=True`).
"""

from __future__ import annotations

from typing import Any, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fieldsync.models.question_kind import ItemType, normalize_item_type, normalize_operator


AnswerValue = Union[bool, int, float, str, List[Any], None]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Option(_Frozen):
    label: str = ""
    value: Any = None
    score: Optional[float] = None


class Item(_Frozen):
    id: str
    label: str = ""
    type: str = ItemType.TEXT
    options: tuple[Option, ...] = ()
    required: bool = False
    weight: float = 1.0

    @field_validator("type", mode="before")
    @classmethod
    def type_must_be_known(cls, v: object) -> str:
        token = normalize_item_type(v)
        if token not in ItemType.ALL:
            raise ValueError(f"unknown item type {v!r}")
        return token

    @field_validator("weight", mode="before")
    @classmethod
    def weight_defaults_to_one(cls, v: object) -> object:
        return 1.0 if v is None else v

    @property
    def scorable(self) -> bool:
        return any(opt.score is not None for opt in self.options)


class Section(_Frozen):
    id: str = ""
    title: str = ""
    items: tuple[Item, ...] = ()


class Page(_Frozen):
    id: str = ""
    title: str = ""
    sections: tuple[Section, ...] = ()


class Condition(_Frozen):
    question_id: str = Field(alias="questionId")
    operator: str
    value: Any = None

    @field_validator("operator", mode="before")
    @classmethod
    def operator_normalized(cls, v: object) -> str:
        # Unknown operators are kept; the evaluator treats them as non-matching
        return normalize_operator(v)


class LogicRule(_Frozen):
    id: Optional[str] = None
    conditions: tuple[Condition, ...] = ()
    action: str
    target_id: str = Field(alias="targetId")
    priority: int = 0

    @field_validator("action", mode="before")
    @classmethod
    def action_normalized(cls, v: object) -> str:
        return str(v or "").strip().lower()


class Template(_Frozen):
    id: Optional[str] = None
    name: str = ""
    pages: tuple[Page, ...] = ()
    logic: tuple[LogicRule, ...] = ()

    def iter_items(self) -> Iterator[Item]:
        """Yield items in page, section, item order."""
        for page in self.pages:
            for section in page.sections:
                yield from section.items

    def item_ids(self) -> list[str]:
        return [item.id for item in self.iter_items()]


class Answer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(alias="questionId")
    value: AnswerValue = None


__all__ = [
    "AnswerValue",
    "Option",
    "Item",
    "Section",
    "Page",
    "Condition",
    "LogicRule",
    "Template",
    "Answer",
]
