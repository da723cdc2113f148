"""ID helpers."""

from __future__ import annotations

import uuid


def new_id(prefix: str) -> str:
    """Generate a prefixed random identifier, e.g. ``doc_<hex>``."""
    return f"{prefix}_{uuid.uuid4().hex}"
