from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from scenie.assets.document import GameDocument
from scenie.assets.validators import DEFAULT_DOCUMENT_PIPELINE, ValidatorPipeline

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_NAME = "game.json"


class DocumentLoadError(RuntimeError):
    pass


def parse_document(raw: dict[str, object], *, pipeline: ValidatorPipeline = DEFAULT_DOCUMENT_PIPELINE) -> GameDocument:
    """Build and check a document from already-decoded JSON."""

    try:
        document = GameDocument.model_validate(raw)
    except ValidationError as e:
        raise DocumentLoadError(f"Invalid presentation document: {e}") from e

    try:
        pipeline.validate(document=document)
    except ValueError as e:
        raise DocumentLoadError(str(e)) from e
    return document


def load_document_file(path: Path, *, pipeline: ValidatorPipeline = DEFAULT_DOCUMENT_PIPELINE) -> GameDocument:
    try:
        text = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as e:
        raise DocumentLoadError(f"Document file not found: {path}") from e

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentLoadError(f"Document is not valid JSON: {path}: {e}") from e
    if not isinstance(raw, dict):
        raise DocumentLoadError(f"Document root must be an object: {path}")

    return parse_document(raw, pipeline=pipeline)


def _fallback_document() -> GameDocument:
    """Single title scene, used when no real document is available (tests/CI)."""

    return GameDocument.model_validate(
        {
            "game": {"title": "Scenie"},
            "scenes": [
                {
                    "name": "title",
                    "initial": True,
                    "elements": [
                        {"type": "picture", "id": "title-logo", "url": "images/logo.png", "width": "40%"},
                    ],
                }
            ],
        }
    )


def document_path(*, root: Path) -> Path:
    configured = os.getenv("SCENIE_DOCUMENT", "").strip()
    return Path(configured) if configured else root / DEFAULT_DOCUMENT_NAME


def load_game_document(*, root: Path) -> GameDocument:
    path = document_path(root=root)

    # Default behavior: fall back to a tiny built-in document when the file is missing or broken.
    # You can force strict behavior by setting SCENIE_STRICT_DOCUMENT=1.
    strict = os.getenv("SCENIE_STRICT_DOCUMENT", "").strip().lower() in {"1", "true", "yes"}

    try:
        document = load_document_file(path)
    except DocumentLoadError as e:
        if strict:
            raise
        logger.warning("Using built-in fallback document: %s", e)
        return _fallback_document()

    logger.info("Loaded document %s (%d scenes)", path, len(document.scenes))
    return document
