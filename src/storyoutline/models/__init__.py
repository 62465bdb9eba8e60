"""Pydantic models used across the project."""

from __future__ import annotations

from storyoutline.models.document import OutlineDocument
from storyoutline.models.nested import (
    NestedAct,
    NestedChapter,
    NestedOutline,
    NestedPlotPoint,
    NestedVolume,
)
from storyoutline.models.nodes import (
    NODE_CLASSES,
    ActNode,
    BaseNode,
    ChapterNode,
    PlotPointNode,
    VolumeNode,
)

__all__ = [
    "NODE_CLASSES",
    "ActNode",
    "BaseNode",
    "ChapterNode",
    "NestedAct",
    "NestedChapter",
    "NestedOutline",
    "NestedPlotPoint",
    "NestedVolume",
    "OutlineDocument",
    "PlotPointNode",
    "VolumeNode",
]
