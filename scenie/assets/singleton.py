from __future__ import annotations

from pathlib import Path

from scenie.assets.document import GameDocument
from scenie.assets.registry import load_game_document


_DOCUMENT: GameDocument | None = None


def init_document(*, project_root: Path) -> GameDocument:
    """Load the presentation document once and cache it.

    Safe to call multiple times; subsequent calls return the already loaded instance.
    """

    global _DOCUMENT
    if _DOCUMENT is None:
        _DOCUMENT = load_game_document(root=project_root)
    return _DOCUMENT


def set_document_for_tests(document: GameDocument) -> None:
    global _DOCUMENT
    _DOCUMENT = document


def reset_document_for_tests() -> None:
    """Reset the cached document so tests can load their own fixtures."""

    global _DOCUMENT
    _DOCUMENT = None


def get_document() -> GameDocument:
    if _DOCUMENT is None:
        raise RuntimeError("Document not initialized. Call init_document() at startup.")
    return _DOCUMENT
