from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


class OptionItem(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    value: str = Field(..., min_length=1)
    label: str


class ComplaintGroup(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    category_id: str
    category_name: str
    complaints: list[OptionItem] = Field(default_factory=list)


class MasterDataBatch(BaseModel):
    options: dict[str, list[OptionItem]] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedLabel:
    label: str


@dataclass(frozen=True)
class UnresolvedReference:
    ref: str


Resolution = ResolvedLabel | UnresolvedReference

UNRESOLVED_PLACEHOLDER = "N/A"


def display_label(resolution: Resolution | None) -> str:
    match resolution:
        case ResolvedLabel(label=label):
            return label
        case UnresolvedReference():
            return UNRESOLVED_PLACEHOLDER
        case _:
            return ""
