"""Document loaders — thin wrappers around LangChain document loaders.

Every loader returns a flat list of ``Document`` objects carrying
``source`` and ``filename`` metadata plus any custom metadata supplied by
the caller.  I/O problems surface as :class:`SourceUnavailable`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from langchain_community.document_loaders import DirectoryLoader, PyPDFLoader, TextLoader
from langchain_core.documents import Document
from langchain_text_splitters import MarkdownHeaderTextSplitter

from rag_workshop.exceptions import SourceUnavailable

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

SourceFormat = Literal["text", "markdown", "pdf"]

_SUFFIX_FORMATS: dict[str, SourceFormat] = {
    ".txt": "text",
    ".text": "text",
    ".md": "markdown",
    ".markdown": "markdown",
    ".pdf": "pdf",
}

_MARKDOWN_HEADERS = [("#", "h1"), ("##", "h2"), ("###", "h3")]


@dataclass(frozen=True)
class PdfFormatOptions:
    """Page-text clean-up applied to every PDF page.

    Attributes
    ----------
    top_lines_to_delete:
        Number of lines removed from the top of each page (running headers).
    bottom_lines_to_delete:
        Number of lines removed from the bottom of each page (page numbers).
    top_pages_to_skip:
        Leading pages left untouched before the deletion kicks in.
    """

    top_lines_to_delete: int = 0
    bottom_lines_to_delete: int = 0
    top_pages_to_skip: int = 0

    def apply(self, text: str, page_index: int) -> str:
        if page_index < self.top_pages_to_skip:
            return text
        lines = text.splitlines()
        end = len(lines) - self.bottom_lines_to_delete
        return "\n".join(lines[self.top_lines_to_delete : max(end, 0)])


def detect_format(path: str | Path) -> SourceFormat:
    """Infer the source format from the file suffix."""
    suffix = Path(path).suffix.lower()
    try:
        return _SUFFIX_FORMATS[suffix]
    except KeyError:
        raise SourceUnavailable(str(path), f"unsupported file type {suffix or '<none>'!r}") from None


def load_source(
    path: str | Path,
    fmt: SourceFormat | None = None,
    metadata: Mapping[str, Any] | None = None,
    *,
    pdf_options: PdfFormatOptions | None = None,
) -> list[Document]:
    """Load a single source into documents.

    Parameters
    ----------
    path:
        File to read.
    fmt:
        ``"text"``, ``"markdown"`` or ``"pdf"``; inferred from the suffix
        when omitted.
    metadata:
        Extra metadata copied onto every produced document
        (e.g. ``{"location": "North Pole"}``).
    pdf_options:
        Page clean-up for PDF sources.

    Raises
    ------
    SourceUnavailable
        The file is missing, unreadable, or cannot be decoded.
    """
    path = Path(path)
    if not path.is_file():
        raise SourceUnavailable(str(path), "no such file")

    fmt = fmt or detect_format(path)
    logger.info("Loading %s as %s", path, fmt)
    if fmt == "text":
        documents = load_text(path)
    elif fmt == "markdown":
        documents = load_markdown(path)
    elif fmt == "pdf":
        documents = load_pdf(path, options=pdf_options)
    else:
        raise SourceUnavailable(str(path), f"unsupported format {fmt!r}")

    extra = dict(metadata or {})
    for doc in documents:
        doc.metadata.setdefault("source", str(path))
        doc.metadata["filename"] = path.name
        doc.metadata.update(extra)
    return documents


def load_text(path: str | Path) -> list[Document]:
    """Load a plain-text file as a single document."""
    try:
        return TextLoader(str(path), encoding="utf-8").load()
    except (RuntimeError, OSError) as exc:
        raise SourceUnavailable(str(path), str(exc.__cause__ or exc)) from exc


def load_markdown(path: str | Path) -> list[Document]:
    """Load a Markdown file, one document per header-delimited section.

    The nearest header becomes the ``title`` metadata field.  A file with
    no headers yields a single document.
    """
    raw = load_text(path)
    if not raw:
        return []
    splitter = MarkdownHeaderTextSplitter(headers_to_split_on=_MARKDOWN_HEADERS)
    sections = splitter.split_text(raw[0].page_content)

    documents: list[Document] = []
    for section in sections:
        meta = {"source": str(path), **section.metadata}
        for _, key in reversed(_MARKDOWN_HEADERS):
            if key in section.metadata:
                meta["title"] = section.metadata[key]
                break
        documents.append(Document(page_content=section.page_content, metadata=meta))
    return documents


def load_pdf(path: str | Path, options: PdfFormatOptions | None = None) -> list[Document]:
    """Load a PDF file, one document per page."""
    try:
        pages = PyPDFLoader(str(path)).load()
    except (ValueError, OSError) as exc:
        raise SourceUnavailable(str(path), str(exc)) from exc

    if options is None:
        return pages
    for index, page in enumerate(pages):
        page.page_content = options.apply(page.page_content, index)
    return pages


def load_directory(path: str | Path, glob: str = "**/*.*") -> list[Document]:
    """Recursively load all text documents under *path*.

    Parameters
    ----------
    path:
        Root directory containing source documents.
    glob:
        File-matching pattern forwarded to ``DirectoryLoader``.
    """
    if not Path(path).is_dir():
        raise SourceUnavailable(str(path), "no such directory")
    loader = DirectoryLoader(
        str(path),
        glob=glob,
        loader_cls=TextLoader,  # type: ignore[arg-type]
        loader_kwargs={"encoding": "utf-8"},
        use_multithreading=True,
    )
    try:
        return loader.load()
    except (RuntimeError, OSError) as exc:
        raise SourceUnavailable(str(path), str(exc)) from exc
