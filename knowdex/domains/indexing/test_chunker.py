"""Tests for chunking and directory scanning."""

from pathlib import Path

import pytest

from .chunker import MarkdownChunker, estimate_tokens
from .models import SourceDocument
from .sources import DirectorySource, detect_language, split_front_matter


def _doc(content: str, path: str = "notes.md") -> SourceDocument:
    return SourceDocument(path=path, content=content)


# --- Chunker ---


def test_estimate_tokens() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_empty_document_has_no_chunks() -> None:
    chunker = MarkdownChunker()
    assert chunker.chunk(_doc("")) == []
    assert chunker.chunk(_doc("   \n  ")) == []


def test_small_document_is_whole() -> None:
    chunks = MarkdownChunker().chunk(_doc("# Title\n\nshort body"))

    assert len(chunks) == 1
    assert chunks[0].content == "# Title\n\nshort body"
    assert chunks[0].chunk_index == 0
    assert chunks[0].total_chunks == 1


def test_auto_splits_by_section() -> None:
    """Large documents with sub-headings split on headings."""
    body = "\n".join(f"## Part {name}\n" + "word " * 60 for name in ("A", "B", "C"))
    chunks = MarkdownChunker(max_chunk_tokens=100).chunk(_doc(body))

    assert [c.section_title for c in chunks] == ["Part A", "Part B", "Part C"]
    assert [c.chunk_index for c in chunks] == [0, 1, 2]
    assert all(c.total_chunks == 3 for c in chunks)
    assert chunks[1].content.startswith("## Part B")


def test_small_sections_are_merged() -> None:
    body = "## One\nalpha\n## Two\nbeta\n## Three\n" + "gamma " * 200
    chunks = MarkdownChunker(strategy="section", max_chunk_tokens=100).chunk(_doc(body))

    assert chunks[0].section_title == "One"
    assert "## Two" in chunks[0].content


def test_oversized_section_is_split_fixed() -> None:
    body = "## Huge\n" + "x" * 1000
    chunks = MarkdownChunker(strategy="section", max_chunk_tokens=100).chunk(_doc(body))

    assert len(chunks) == 3
    assert all(c.section_title == "Huge" for c in chunks)
    assert all(len(c.content) <= 400 for c in chunks)


def test_fixed_with_overlap() -> None:
    text = "".join(chr(ord("a") + i % 26) for i in range(1000))
    chunks = MarkdownChunker(strategy="fixed", max_chunk_tokens=50, overlap_tokens=10).chunk(
        _doc(text)
    )

    assert all(len(c.content) <= 200 for c in chunks)
    assert chunks[0].content == text[:200]
    assert chunks[1].content.startswith(text[160:170])
    assert text.endswith(chunks[-1].content)
    assert all(c.total_chunks == len(chunks) for c in chunks)


def test_fixed_prefers_newline_boundary() -> None:
    text = "a" * 150 + "\n" + "b" * 300
    chunks = MarkdownChunker(strategy="fixed", max_chunk_tokens=50, overlap_tokens=0).chunk(
        _doc(text)
    )

    assert chunks[0].content == "a" * 150 + "\n"


def test_fixed_overlap_larger_than_chunk_terminates() -> None:
    chunks = MarkdownChunker(strategy="fixed", max_chunk_tokens=50, overlap_tokens=100).chunk(
        _doc("z" * 1000)
    )
    assert len(chunks) == 5


# --- Front matter ---


def test_split_front_matter() -> None:
    meta, body = split_front_matter("---\ntitle: Singleton\ntags: [a, b]\n---\n# Body\ntext")

    assert meta == {"title": "Singleton", "tags": ["a", "b"]}
    assert body == "# Body\ntext"


def test_split_front_matter_absent_or_invalid() -> None:
    assert split_front_matter("# No front matter") == ({}, "# No front matter")

    meta, body = split_front_matter("---\ntitle: [unclosed\n---\nbody")
    assert meta == {}
    assert body == "body"


@pytest.mark.parametrize(
    ("path", "language"),
    [("a.swift", "swift"), ("b.PY", "python"), ("c.md", "markdown"), ("d.unknown", "text")],
)
def test_detect_language(path: str, language: str) -> None:
    assert detect_language(path) == language


# --- Directory source ---


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a small project tree."""
    recipes = tmp_path / "recipes"
    (recipes / "sub").mkdir(parents=True)
    (recipes / ".hidden").mkdir()
    (recipes / "node_modules").mkdir()

    (recipes / "singleton.md").write_text(
        "---\ntitle: Singleton\ncategory: Pattern\nlanguage: Swift\ntags: [ios, pattern]\n---\n"
        "# Singleton\nshared instance"
    )
    (recipes / "sub" / "Network.swift").write_text("final class Network {}")
    (recipes / "image.png").write_bytes(b"\x89PNG")
    (recipes / ".hidden" / "secret.md").write_text("hidden")
    (recipes / "node_modules" / "dep.md").write_text("dependency")
    (tmp_path / "README.md").write_text("# Project")
    return tmp_path


async def test_directory_source_walks_tree(project: Path) -> None:
    source = DirectorySource(project, scan_dirs=["recipes", "missing"])
    docs = [doc async for doc in source.documents()]

    by_path = {doc.path: doc for doc in docs}
    assert set(by_path) == {"recipes/singleton.md", "recipes/sub/Network.swift", "README.md"}
    assert by_path["recipes/singleton.md"].source_type == "recipe"
    assert by_path["recipes/sub/Network.swift"].source_type == "code"
    assert by_path["README.md"].source_type == "readme"


async def test_directory_source_lifts_front_matter(project: Path) -> None:
    source = DirectorySource(project, scan_dirs=["recipes"], include_readme=False)
    docs = {doc.path: doc async for doc in source.documents()}

    recipe = docs["recipes/singleton.md"]
    assert recipe.content == "# Singleton\nshared instance"
    assert recipe.metadata["title"] == "Singleton"
    assert recipe.metadata["category"] == "Pattern"
    assert recipe.metadata["language"] == "swift"
    assert recipe.metadata["tags"] == ["ios", "pattern"]
    assert "updated_at" in recipe.metadata
    assert docs["recipes/sub/Network.swift"].metadata["language"] == "swift"
