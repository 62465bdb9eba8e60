"""Flatten a nested outline into the path-keyed document.

Volumes, acts and plot points receive positional (1-based) paths. Chapters are keyed by
their declared global `chapter_index`, not by their position in the plot point.
"""

from __future__ import annotations

from storyoutline.logging import get_logger
from storyoutline.models.document import OutlineDocument
from storyoutline.models.nested import NestedOutline
from storyoutline.models.nodes import ActNode, ChapterNode, PlotPointNode, VolumeNode
from storyoutline.paths import ROOT, child_path

logger = get_logger(__name__)


def flatten_nested(nested: NestedOutline) -> OutlineDocument:
    """Build a fresh flat document from ``nested``.

    Args:
        nested: Validated nested outline.

    Returns:
        A new document; the caller decides whether to persist it.
    """

    document = OutlineDocument()
    seen_indices: dict[int, str] = {}

    for i, volume in enumerate(nested.outline):
        volume_path = child_path(ROOT, "v", i + 1)
        document.volumes[volume_path] = VolumeNode(title=volume.volume, metadata=volume.extras())

        for j, act in enumerate(volume.acts):
            act_path = child_path(volume_path, "a", j + 1)
            document.acts[act_path] = ActNode(title=act.act_name, metadata=act.extras())

            for k, plot_point in enumerate(act.plot_points):
                plot_path = child_path(act_path, "p", k + 1)
                document.plot_points[plot_path] = PlotPointNode(
                    title=plot_point.plot_point_name,
                    metadata=plot_point.extras(),
                )

                for chapter in plot_point.chapters:
                    chapter_path = child_path(plot_path, "c", chapter.chapter_index)
                    previous = seen_indices.get(chapter.chapter_index)
                    if previous is not None:
                        logger.warning(
                            "Chapter index %d declared more than once (%s, %s)",
                            chapter.chapter_index,
                            previous,
                            chapter_path,
                        )
                    seen_indices[chapter.chapter_index] = chapter_path
                    document.chapters[chapter_path] = ChapterNode(
                        title=chapter.chapter_name,
                        index=chapter.chapter_index,
                        metadata=chapter.extras(),
                    )

    logger.info(
        "Flattened nested outline: %d volumes, %d acts, %d plot points, %d chapters",
        len(document.volumes),
        len(document.acts),
        len(document.plot_points),
        len(document.chapters),
    )
    return document
