"""JsonFileDocumentStore: keep the outline in one pretty-printed JSON file."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from storyoutline.errors import PersistenceFailure
from storyoutline.logging import get_logger
from storyoutline.models.document import OutlineDocument
from storyoutline.storage.protocol import DocumentStore

logger = get_logger(__name__)


class JsonFileDocumentStore(DocumentStore):
    """Document store backed by a single JSON file.

    The file is rewritten in full on every save through a temporary sibling and
    `os.replace`, so readers never observe a partially written document.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).resolve()

    @property
    def location(self) -> str:
        return str(self.path)

    def load(self) -> OutlineDocument:
        """Read and validate the document, creating an empty one if the file is absent."""
        try:
            fd = os.open(self.path, os.O_RDONLY | getattr(os, "O_NOFOLLOW", 0))
        except FileNotFoundError:
            logger.info("Outline file not found, initializing empty document at %s", self.path)
            document = OutlineDocument()
            self.save(document)
            return document
        except OSError as e:
            raise PersistenceFailure(f"Error opening outline file '{self.path}': {e}", path=str(self.path)) from e

        try:
            with os.fdopen(fd, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceFailure(f"Error reading outline file '{self.path}': {e}", path=str(self.path)) from e

        if not content.strip():
            logger.info("Outline file %s is empty, treating as empty document", self.path)
            return OutlineDocument()

        try:
            data = json.loads(content)
            document = OutlineDocument.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise PersistenceFailure(f"Malformed outline file '{self.path}': {e}", path=str(self.path)) from e

        logger.debug("Loaded %d nodes from %s", document.node_count(), self.path)
        return document

    def save(self, document: OutlineDocument) -> None:
        """Serialize the whole document and atomically replace the file."""
        payload = json.dumps(document.to_json_dict(), ensure_ascii=False, indent=2)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self.path)
        except (OSError, UnicodeEncodeError) as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceFailure(f"Error writing outline file '{self.path}': {e}", path=str(self.path)) from e

        logger.debug("Saved %d nodes to %s (revision %d)", document.node_count(), self.path, document.revision)
