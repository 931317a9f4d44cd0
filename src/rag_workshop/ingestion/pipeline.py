"""Ingestion run: load every source, split, then embed-and-store in one batch."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rag_workshop.ingestion.chunker import LengthUnit, chunk_documents
from rag_workshop.ingestion.loader import PdfFormatOptions, load_source

if TYPE_CHECKING:
    from collections.abc import Iterable

    from langchain_core.documents import Document

    from rag_workshop.config import Settings, SourceSpec
    from rag_workshop.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


@dataclass
class IngestionReport:
    """Outcome of one ingestion run."""

    sources: int = 0
    documents: int = 0
    chunks: int = 0
    ids: list[str] = field(default_factory=list)


class IngestionPipeline:
    """Read -> split -> embed-and-store.

    All sources are loaded and split before anything is written, and the
    chunks are stored in a single batch, so a failing source aborts the
    run without a partial write.

    Re-running the pipeline on the same sources stores the chunks again;
    there is no deduplication.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        *,
        chunk_size: int = 512,
        chunk_overlap: int = 64,
        length_unit: LengthUnit = "tokens",
        pdf_options: PdfFormatOptions | None = None,
    ) -> None:
        self._store = store
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.length_unit = length_unit
        self.pdf_options = pdf_options

    @classmethod
    def from_settings(cls, store: VectorStoreBase, settings: Settings) -> IngestionPipeline:
        return cls(
            store,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            length_unit=settings.chunk_length_unit,
        )

    def run(self, sources: Iterable[SourceSpec]) -> IngestionReport:
        """Ingest *sources*; raises on the first failure, writing nothing."""
        sources = list(sources)
        documents: list[Document] = []

        logger.info("Loading %d source(s) as Documents", len(sources))
        for source in sources:
            pdf_options = self.pdf_options
            if source.pdf is not None:
                pdf_options = PdfFormatOptions(**source.pdf.model_dump())
            documents.extend(
                load_source(source.path, source.format, source.metadata, pdf_options=pdf_options)
            )

        return self.ingest_documents(documents, sources=len(sources))

    def ingest_documents(self, documents: list[Document], *, sources: int = 0) -> IngestionReport:
        """Split and store already-loaded documents."""
        logger.info("Splitting %d Document(s) to fit the model context window", len(documents))
        chunks = chunk_documents(
            documents,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            length_unit=self.length_unit,
        )

        logger.info("Creating and storing embeddings for %d chunk(s)", len(chunks))
        ids = self._store.add_documents(chunks)
        return IngestionReport(sources=sources, documents=len(documents), chunks=len(chunks), ids=ids)
