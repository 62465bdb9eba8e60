"""Nested outline models used as the migration source.

The nested form is an ordered tree: volumes → acts → plot points → chapters. Fields not
listed here are kept in `model_extra` and end up in node metadata.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _NestedBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class NestedChapter(_NestedBase):
    chapter_name: str
    chapter_index: int


class NestedPlotPoint(_NestedBase):
    plot_point_name: str
    chapters: list[NestedChapter] = Field(default_factory=list)

    @field_validator("chapters", mode="before")
    @classmethod
    def _none_list(cls, value: Any) -> Any:
        return [] if value is None else value


class NestedAct(_NestedBase):
    act_name: str
    plot_points: list[NestedPlotPoint] = Field(default_factory=list)

    @field_validator("plot_points", mode="before")
    @classmethod
    def _none_list(cls, value: Any) -> Any:
        return [] if value is None else value


class NestedVolume(_NestedBase):
    volume: str
    acts: list[NestedAct] = Field(default_factory=list)

    @field_validator("acts", mode="before")
    @classmethod
    def _none_list(cls, value: Any) -> Any:
        return [] if value is None else value


class NestedOutline(BaseModel):
    """Top-level nested document: ``{"outline": [volume, ...]}``."""

    outline: list[NestedVolume] = Field(default_factory=list)

    @field_validator("outline", mode="before")
    @classmethod
    def _none_list(cls, value: Any) -> Any:
        return [] if value is None else value
