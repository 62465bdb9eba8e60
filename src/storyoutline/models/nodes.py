"""Outline node models.

Four node variants share `title` and a free-form `metadata` bag and are discriminated on
their persisted `type` tag. Chapters additionally carry their global `index`.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BaseNode(BaseModel):
    """Fields common to every outline node."""

    model_config = ConfigDict(extra="ignore")

    title: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Attached on the way out of the store; the path is the key, never a stored field.
    path: str | None = Field(default=None, exclude=True)

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    def at(self, path: str) -> "BaseNode":
        """Return a detached copy with ``path`` attached."""

        return self.model_copy(update={"path": path}, deep=True)

    def to_payload(self) -> dict[str, Any]:
        """JSON-compatible dump including the attached path."""

        payload = self.model_dump(mode="json")
        if self.path is not None:
            payload["path"] = self.path
        return payload


class VolumeNode(BaseNode):
    type: Literal["volume"] = "volume"


class ActNode(BaseNode):
    type: Literal["act"] = "act"


class PlotPointNode(BaseNode):
    type: Literal["plot_point"] = "plot_point"


class ChapterNode(BaseNode):
    """A chapter; `index` is its book-wide number and also its path ordinal."""

    type: Literal["chapter"] = "chapter"
    index: int


NODE_CLASSES: dict[str, type[BaseNode]] = {
    "volume": VolumeNode,
    "act": ActNode,
    "plot_point": PlotPointNode,
    "chapter": ChapterNode,
}
