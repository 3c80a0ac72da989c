"""Ingestion of training material and blog reference documents.

Training PDFs live under ``settings.materials.root``, one folder per topic.
Each file is parsed, cut into fixed windows, embedded and written to
``material_chunks``. Re-ingesting a file replaces its chunks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ai.embeddings import embed_texts
from config.curriculum import CFA_LEVEL_1_TOPICS

from .. import models
from ..config import settings
from ..parsers import parse_document, parse_pdf_path
from .blog_rag import store_blog_document_chunks
from .chunking import window_chunks

logger = logging.getLogger(__name__)


@dataclass
class MaterialFile:
    """A training PDF and the topic it belongs to."""
    topic_id: str
    topic_name: str
    file_name: str
    path: Path


@dataclass
class IngestSummary:
    """Totals for one ingest run."""
    files_processed: int = 0
    chunks_stored: int = 0
    failed_files: list[str] = field(default_factory=list)


def discover_material_files(
    root: str | Path | None = None,
    topic_ids: list[str] | None = None,
) -> list[MaterialFile]:
    """List training PDFs by topic; missing topic folders are skipped."""
    root = Path(root or settings.materials.root)
    files: list[MaterialFile] = []

    for topic in CFA_LEVEL_1_TOPICS:
        if topic_ids and topic["id"] not in topic_ids:
            continue
        topic_path = root / topic["folder"]
        if not topic_path.is_dir():
            logger.warning(f"Folder not found: {topic['folder']}")
            continue
        for pdf in sorted(topic_path.iterdir()):
            if pdf.suffix.lower() == ".pdf":
                files.append(MaterialFile(
                    topic_id=topic["id"],
                    topic_name=topic["name"],
                    file_name=pdf.name,
                    path=pdf,
                ))

    logger.info(f"Found {len(files)} PDF files under {root}")
    return files


async def ingest_material_text(
    session: AsyncSession,
    material: MaterialFile,
    text: str,
) -> int:
    """Window, embed and store already-extracted text for one file.

    Returns:
        Number of chunks stored
    """
    windows = window_chunks(
        text,
        settings.rag.ingest_chunk_size,
        settings.rag.ingest_chunk_overlap,
        settings.rag.ingest_min_chunk_chars,
    )

    await session.execute(
        delete(models.MaterialChunk).where(
            models.MaterialChunk.topic_id == material.topic_id,
            models.MaterialChunk.file_name == material.file_name,
        )
    )

    batch_size = settings.rag.ingest_batch_size
    for start in range(0, len(windows), batch_size):
        batch = windows[start:start + batch_size]
        vectors = await embed_texts([w.text for w in batch])
        session.add_all([
            models.MaterialChunk(
                topic_id=material.topic_id,
                topic_name=material.topic_name,
                file_name=material.file_name,
                chunk_index=window.chunk_index,
                content_text=window.text,
                embedding=vector,
            )
            for window, vector in zip(batch, vectors)
        ])
        logger.debug(f"Embedded batch {start // batch_size + 1} of {material.file_name}")

    await session.commit()
    logger.info(
        f"Stored {len(windows)} chunks for {material.file_name}",
        extra={"topic_area": material.topic_name, "chunk_count": len(windows)},
    )
    return len(windows)


async def ingest_material_file(session: AsyncSession, material: MaterialFile) -> int:
    """Parse one PDF and replace its chunks in the index."""
    document = parse_pdf_path(material.path)
    return await ingest_material_text(session, material, document.text)


async def ingest_materials(
    session: AsyncSession,
    root: str | Path | None = None,
    topic_ids: list[str] | None = None,
) -> IngestSummary:
    """Ingest every training PDF, continuing past files that fail."""
    summary = IngestSummary()

    for material in discover_material_files(root, topic_ids):
        try:
            summary.chunks_stored += await ingest_material_file(session, material)
            summary.files_processed += 1
        except Exception as e:
            logger.error(f"Failed to ingest {material.file_name}: {e}", exc_info=True)
            await session.rollback()
            summary.failed_files.append(material.file_name)

    logger.info(
        f"Ingest finished: {summary.files_processed} files, {summary.chunks_stored} chunks, "
        f"{len(summary.failed_files)} failed"
    )
    return summary


async def ingest_blog_resource(
    session: AsyncSession,
    category_id: int,
    file_obj: BinaryIO,
    filename: str,
    uploaded_by: str | None = None,
) -> int:
    """Parse an uploaded reference document and store its chunks.

    Raises:
        ParseError: If the file type is unsupported or has no text
    """
    document = parse_document(file_obj, filename)
    return await store_blog_document_chunks(
        session,
        category_id=category_id,
        file_name=filename,
        file_path=f"blog-resources/{category_id}/{filename}",
        file_type=document.file_type.value,
        text=document.text,
        uploaded_by=uploaded_by,
    )
