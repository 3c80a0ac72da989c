"""Tests for blog reference storage, lookup and material ingest."""

from io import BytesIO
from pathlib import Path

import pytest
from sqlalchemy import func, select

from be import models
from be.config import settings
from be.parsers import ParseError
from be.pipelines.blog_rag import (
    CHUNK_SEPARATOR,
    build_blog_context,
    get_blog_category_content,
    search_blog_resources,
    store_blog_document_chunks,
)
from be.pipelines.ingest import (
    MaterialFile,
    discover_material_files,
    ingest_blog_resource,
    ingest_material_text,
)


@pytest.fixture
async def category(db_session):
    category = models.BlogCategory(name="Fixed Income", slug="fixed-income", sort_order=1)
    db_session.add(category)
    await db_session.commit()
    return category


async def _resource_count(session, category_id: int) -> int:
    result = await session.execute(
        select(func.count()).select_from(models.BlogResource).where(models.BlogResource.category_id == category_id)
    )
    return result.scalar_one()


async def test_store_chunks_in_order(db_session, category, fake_embeddings, monkeypatch):
    monkeypatch.setattr(settings.blog, "chunk_size", 300)
    monkeypatch.setattr(settings.blog, "chunk_overlap", 50)
    monkeypatch.setattr(settings.blog, "embed_batch_size", 2)
    text = "\n\n".join(f"Paragraph {i} about bond duration and convexity. " * 3 for i in range(8))

    stored = await store_blog_document_chunks(
        db_session, category.id, "bonds.md", "blog-resources/1/bonds.md", "md", text, uploaded_by="admin",
    )

    assert stored > 2
    assert await _resource_count(db_session, category.id) == stored
    content = await get_blog_category_content(db_session, category.id)
    assert content.startswith("Paragraph 0")
    assert content.count(CHUNK_SEPARATOR) == stored - 1


async def test_store_empty_text(db_session, category, fake_embeddings):
    assert await store_blog_document_chunks(db_session, category.id, "e.txt", "p", "txt", "   ") == 0


async def test_search_falls_back_to_document_order(db_session, category, fake_embeddings):
    await store_blog_document_chunks(
        db_session, category.id, "notes.txt", "p", "txt", "Yield to maturity is the internal rate of return.",
    )

    matches = await search_blog_resources(db_session, category.id, "yield", limit=5)

    assert len(matches) == 1
    assert matches[0].similarity == 1.0
    assert matches[0].file_name == "notes.txt"


async def test_context_empty_without_resources(db_session, category, fake_embeddings):
    assert await build_blog_context(db_session, category.id, "Duration") == ""


async def test_context_capped_by_tokens(db_session, category, fake_embeddings):
    await store_blog_document_chunks(db_session, category.id, "long.txt", "p", "txt", "spread " * 400)

    context = await build_blog_context(db_session, category.id, "Spreads", max_tokens=100)
    assert len(context) == 403


async def test_ingest_blog_resource_text_upload(db_session, category, fake_embeddings):
    chunks = await ingest_blog_resource(
        db_session, category.id, BytesIO(b"Callable bonds carry reinvestment risk."), "callable.txt",
    )

    assert chunks == 1
    row = (await db_session.execute(select(models.BlogResource))).scalars().one()
    assert row.file_path == f"blog-resources/{category.id}/callable.txt"
    assert row.file_type == "txt"


async def test_ingest_blog_resource_rejects_unknown_type(db_session, category):
    with pytest.raises(ParseError):
        await ingest_blog_resource(db_session, category.id, BytesIO(b"data"), "slides.pptx")


def test_discover_material_files(tmp_path: Path):
    folder = tmp_path / "Derivatives"
    folder.mkdir()
    (folder / "b-swaps.pdf").write_bytes(b"%PDF-1.4")
    (folder / "a-forwards.PDF").write_bytes(b"%PDF-1.4")
    (folder / "notes.txt").write_text("skip me")

    files = discover_material_files(tmp_path)

    assert [f.file_name for f in files] == ["a-forwards.PDF", "b-swaps.pdf"]
    assert {f.topic_id for f in files} == {"derivatives"}
    assert discover_material_files(tmp_path, ["economics"]) == []


async def test_ingest_material_text_replaces_previous_chunks(db_session, fake_embeddings, tmp_path):
    material = MaterialFile(
        topic_id="derivatives",
        topic_name="Derivatives",
        file_name="forwards.pdf",
        path=tmp_path / "forwards.pdf",
    )
    text = "Forward price equals spot compounded at the risk-free rate. " * 60

    first = await ingest_material_text(db_session, material, text)
    second = await ingest_material_text(db_session, material, text)

    count = (await db_session.execute(select(func.count()).select_from(models.MaterialChunk))).scalar_one()
    assert first == second
    assert count == second
    chunk = (await db_session.execute(select(models.MaterialChunk).limit(1))).scalars().one()
    assert chunk.topic_name == "Derivatives"


async def test_rows_without_text_are_skipped(db_session, category, fake_embeddings):
    category_id = category.id
    db_session.add(models.BlogResource(
        category_id=category_id, file_name="scan.pdf", file_path="p", file_type="pdf",
        content_text=None, chunk_index=0,
    ))
    await db_session.commit()

    assert await get_blog_category_content(db_session, category_id) == ""
    assert await search_blog_resources(db_session, category_id, "duration") == []
    assert await build_blog_context(db_session, category_id, "Duration") == ""

    await store_blog_document_chunks(db_session, category_id, "notes.txt", "p", "txt", "Convexity adds curvature.")
    assert await get_blog_category_content(db_session, category_id) == "Convexity adds curvature."
