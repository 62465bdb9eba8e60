"""Loader for the nested outline used as migration source."""

from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import ValidationError

from storyoutline.errors import NotFound, PersistenceFailure
from storyoutline.logging import get_logger
from storyoutline.models.nested import NestedOutline

logger = get_logger(__name__)


def load_nested_outline(path: str | Path) -> NestedOutline:
    """Load a nested outline from YAML (or JSON, by suffix).

    Args:
        path: Source file. The document must have a top-level ``outline`` list.

    Returns:
        The validated nested outline.

    Raises:
        NotFound: The file does not exist.
        PersistenceFailure: The file cannot be read or does not have the nested shape.
    """

    source = Path(path)
    if not source.is_file():
        raise NotFound(f"Nested outline file '{source}' not found", path=str(source))

    try:
        text = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PersistenceFailure(f"Error reading nested outline '{source}': {e}", path=str(source)) from e

    try:
        if source.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise PersistenceFailure(f"Malformed nested outline '{source}': {e}", path=str(source)) from e

    if data is None:
        data = {}

    try:
        outline = NestedOutline.model_validate(data)
    except ValidationError as e:
        raise PersistenceFailure(f"Nested outline '{source}' has an unexpected shape: {e}", path=str(source)) from e

    logger.info("Loaded nested outline with %d volumes from %s", len(outline.outline), source)
    return outline
