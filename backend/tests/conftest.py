"""Test fixtures for the assistant knowledge base."""

from __future__ import annotations

import sys
import zlib
from pathlib import Path
from typing import Callable, Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

PROSE = (
    "Revenue grew in every region during the third quarter.",
    "The board approved a new travel policy for all employees.",
    "Customer support now answers most tickets within one business day.",
    "Our refund policy allows returns within thirty days of purchase.",
)


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset cached settings and environment between tests."""
    monkeypatch.setenv("AKB_DB_PATH", str(tmp_path / "akb.db"))
    monkeypatch.setenv("AKB_STORAGE_DIR", str(tmp_path / "files"))
    monkeypatch.setenv("AKB_EMBEDDING_BACKEND", "hashed")
    monkeypatch.setenv("AKB_EMBEDDING_DIM", "64")
    monkeypatch.setenv("AKB_EMBEDDING_BATCH_DELAY", "0")
    monkeypatch.delenv("AKB_CONFIG", raising=False)
    monkeypatch.delenv("AKB_OPENAI_API_KEY", raising=False)

    from assistant_kb.api import dependencies as deps
    from assistant_kb.core.config import get_settings

    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    yield
    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()


@pytest.fixture
def settings(tmp_path: Path):
    from assistant_kb.core.config import Settings

    return Settings(
        db_path=tmp_path / "akb.db",
        storage_dir=tmp_path / "files",
        embedding_backend="hashed",
        embedding_dim=64,
        embedding_batch_delay=0,
    )


@pytest.fixture
def db(tmp_path: Path):
    from assistant_kb.db.sqlite import SQLiteDatabase

    database = SQLiteDatabase(tmp_path / "akb.db")
    database.ensure_schema()
    yield database
    database.close()


@pytest.fixture
def storage(tmp_path: Path):
    from assistant_kb.db.files import FileStorage

    return FileStorage(tmp_path / "files")


class FakeEmbedder:
    """Returns a fixed query vector; enough for retrieval tests."""

    def __init__(self, vector: Sequence[float]) -> None:
        self.vector = list(vector)
        self.queries: list[str] = []

    def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return list(self.vector)


@pytest.fixture
def fake_embedder() -> Callable[[Sequence[float]], FakeEmbedder]:
    return FakeEmbedder


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(lines: Sequence[str], compress: bool = False) -> bytes:
    """Build a minimal single-page PDF showing ``lines`` with Tj operators."""
    content = "\n".join(
        f"BT /F1 12 Tf 72 {720 - 14 * idx} Td ({_escape(line)}) Tj ET" for idx, line in enumerate(lines)
    ).encode("latin-1")
    if compress:
        payload = zlib.compress(content)
        header = b"<< /Length %d /Filter /FlateDecode >>" % len(payload)
    else:
        payload = content
        header = b"<< /Length %d >>" % len(payload)
    return b"".join(
        [
            b"%PDF-1.4\n",
            b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n",
            b"2 0 obj\n<< /Type /Pages /Kids [3 0 R] /Count 1 >>\nendobj\n",
            b"3 0 obj\n<< /Type /Page /Parent 2 0 R /Contents 4 0 R >>\nendobj\n",
            b"4 0 obj\n" + header + b"\nstream\n" + payload + b"\nendstream\nendobj\n",
            b"trailer\n<< /Root 1 0 R >>\n%%EOF\n",
        ]
    )


@pytest.fixture
def pdf_factory() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture(scope="session")
def prose_lines() -> tuple[str, ...]:
    return PROSE
