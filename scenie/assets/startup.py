from __future__ import annotations

from pathlib import Path

from scenie.assets.singleton import init_document


def init_document_for_app() -> None:
    # project root is two levels up from this file: scenie/assets/startup.py
    project_root = Path(__file__).resolve().parents[2]
    init_document(project_root=project_root)
