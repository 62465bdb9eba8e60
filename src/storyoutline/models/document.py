"""The flat, path-keyed outline document."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storyoutline.models.nodes import ActNode, BaseNode, ChapterNode, PlotPointNode, VolumeNode


class OutlineDocument(BaseModel):
    """Four path→node mappings, one per node type.

    Persisted as a single JSON object with keys `volumes`, `acts`, `plotPoints` and
    `chapters`. `revision` increments on every save.
    """

    model_config = ConfigDict(populate_by_name=True)

    volumes: dict[str, VolumeNode] = Field(default_factory=dict)
    acts: dict[str, ActNode] = Field(default_factory=dict)
    plot_points: dict[str, PlotPointNode] = Field(default_factory=dict, alias="plotPoints")
    chapters: dict[str, ChapterNode] = Field(default_factory=dict)

    revision: int = Field(default=0, ge=0)

    @field_validator("volumes", "acts", "plot_points", "chapters", mode="before")
    @classmethod
    def _none_collection(cls, value: Any) -> Any:
        # Partially written files may carry null or omit a collection
        return {} if value is None else value

    def collection(self, node_type: str) -> dict[str, BaseNode]:
        """Return the mapping that owns nodes of ``node_type``."""

        if node_type == "volume":
            return self.volumes  # type: ignore[return-value]
        if node_type == "act":
            return self.acts  # type: ignore[return-value]
        if node_type == "plot_point":
            return self.plot_points  # type: ignore[return-value]
        if node_type == "chapter":
            return self.chapters  # type: ignore[return-value]
        raise ValueError(f"Invalid node type: {node_type}")

    def collections(self) -> Iterator[dict[str, BaseNode]]:
        yield self.volumes  # type: ignore[misc]
        yield self.acts  # type: ignore[misc]
        yield self.plot_points  # type: ignore[misc]
        yield self.chapters  # type: ignore[misc]

    def node_count(self) -> int:
        return sum(len(c) for c in self.collections())

    def to_json_dict(self) -> dict[str, Any]:
        """Dump in the persisted layout."""

        return self.model_dump(mode="json", by_alias=True)
