"""Structured output — schema-driven decoding of model text.

Decoders never coerce by reflection: the model's text must parse as
JSON (or a comma-separated list) and validate against a declared
pydantic schema, otherwise :class:`ParseFailure` is raised.
:class:`StructuredOutputService` turns extraction failures into a
best-effort result instead of an error.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, TypeVar

from langchain_core.output_parsers import CommaSeparatedListOutputParser, PydanticOutputParser
from langchain_core.utils.json import parse_json_markdown
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from rag_workshop.chat.llm import complete
from rag_workshop.chat.prompts import (
    ARTIST_INFO_TEMPLATE,
    ARTIST_NAMES_TEMPLATE,
    EXTRACTION_TEMPLATE,
    JSON_OBJECT_INSTRUCTIONS,
    render_template,
    with_format_instructions,
)
from rag_workshop.exceptions import ParseFailure

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# ── Schemas ───────────────────────────────────────────────────────────


class MusicQuestion(BaseModel):
    genre: str
    instrument: str


class ArtistInfo(BaseModel):
    name: str
    band: str


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ObservationType(str, Enum):
    BODY_WEIGHT = "BODY_WEIGHT"
    TEMPERATURE = "TEMPERATURE"
    VITAL_SIGNS = "VITAL_SIGNS"
    OTHER = "OTHER"


class Observation(_CamelModel):
    type: ObservationType
    content: str


class Diagnosis(_CamelModel):
    content: str


class PatientJournal(_CamelModel):
    """Data extracted from a free-text visit note.  Every field is optional."""

    full_name: str | None = None
    observations: list[Observation] = Field(default_factory=list)
    diagnosis: Diagnosis | None = None


class ExtractionResult(BaseModel):
    """Outcome of a structured extraction.

    Attributes
    ----------
    value:
        The validated record (by alias, unset fields omitted), or ``None``.
    partial:
        ``True`` when invalid fields were dropped to obtain ``value``.
    raw:
        The model's raw text.
    error:
        Why decoding failed, if it did.
    """

    value: dict[str, Any] | None = None
    partial: bool = False
    raw: str = ""
    error: str | None = None


# ── Decoders ──────────────────────────────────────────────────────────


def _load_json(text: str) -> Any:
    try:
        return parse_json_markdown(text)
    except ValueError as exc:
        raise ParseFailure("Model output is not valid JSON", raw=text) from exc


def decode_model(text: str, schema: type[M]) -> M:
    """Decode *text* into an instance of *schema*.

    Raises
    ------
    ParseFailure
        The text is not a JSON object or does not validate.
    """
    data = _load_json(text)
    if not isinstance(data, dict):
        raise ParseFailure(f"Expected a JSON object for {schema.__name__}", raw=text)
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        raise ParseFailure(
            f"Model output does not match {schema.__name__}", raw=text, details={"errors": errors}
        ) from exc


def decode_mapping(text: str) -> dict[str, Any]:
    """Decode *text* into a JSON object."""
    data = _load_json(text)
    if not isinstance(data, dict):
        raise ParseFailure("Expected a JSON object", raw=text)
    return data


def decode_list(text: str) -> list[str]:
    """Decode a JSON array of strings or a comma-separated list."""
    stripped = text.strip()
    if stripped.startswith("["):
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise ParseFailure("Malformed JSON list", raw=text) from exc
        items = [str(item).strip() for item in data]
    else:
        items = CommaSeparatedListOutputParser().parse(stripped)
    items = [item for item in items if item]
    if not items:
        raise ParseFailure("Expected a non-empty list", raw=text)
    return items


def _drop_invalid_fields(data: dict[str, Any], schema: type[M]) -> M | None:
    """Validate *data* after removing every top-level field that failed."""
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        bad = {e["loc"][0] for e in exc.errors() if e["loc"]}
    trimmed = {k: v for k, v in data.items() if k not in bad}
    try:
        return schema.model_validate(trimmed)
    except ValidationError:
        return None


# ── Service ───────────────────────────────────────────────────────────


class StructuredOutputService:
    """Ask the chat model for structured answers.

    Parameters
    ----------
    model_factory:
        ``factory(temperature=..., json_mode=...) -> BaseChatModel``.
    """

    def __init__(self, model_factory: Any) -> None:
        self._model_factory = model_factory

    def artist_info(self, question: MusicQuestion) -> ArtistInfo:
        """One musician playing ``question.instrument`` in a ``question.genre`` band."""
        parser = PydanticOutputParser(pydantic_object=ArtistInfo)
        prompt = with_format_instructions(
            render_template(ARTIST_INFO_TEMPLATE, question.model_dump()),
            parser.get_format_instructions(),
        )
        text = complete(self._model_factory(temperature=0.0, json_mode=True), prompt)
        return decode_model(text, ArtistInfo)

    def artist_names(self, question: MusicQuestion) -> list[str]:
        """Three musician names as a list."""
        prompt = with_format_instructions(
            render_template(ARTIST_NAMES_TEMPLATE, question.model_dump()),
            CommaSeparatedListOutputParser().get_format_instructions(),
        )
        return decode_list(complete(self._model_factory(), prompt))

    def artist_map(self, question: MusicQuestion) -> dict[str, Any]:
        """Three musicians as a free-form JSON object."""
        prompt = with_format_instructions(
            render_template(ARTIST_NAMES_TEMPLATE, question.model_dump()),
            JSON_OBJECT_INSTRUCTIONS,
        )
        return decode_mapping(complete(self._model_factory(json_mode=True), prompt))

    def extract(self, text: str, schema: type[BaseModel] = PatientJournal) -> ExtractionResult:
        """Extract a *schema* record from free text.

        Never raises :class:`ParseFailure`: invalid fields are dropped
        when the rest still validates, otherwise ``value`` is ``None``.
        Fields the model did not supply stay unset.
        """
        parser = PydanticOutputParser(pydantic_object=schema)
        prompt = with_format_instructions(
            render_template(EXTRACTION_TEMPLATE, {"text": text}),
            parser.get_format_instructions(),
        )
        raw = complete(self._model_factory(temperature=0.0, json_mode=True), prompt)

        try:
            record = decode_model(raw, schema)
        except ParseFailure as exc:
            logger.warning("Extraction did not match %s: %s", schema.__name__, exc.message)
            recovered = None
            try:
                data = decode_mapping(raw)
            except ParseFailure:
                data = None
            if data is not None:
                recovered = _drop_invalid_fields(data, schema)
            return ExtractionResult(
                value=_dump(recovered) if recovered is not None else None,
                partial=recovered is not None,
                raw=raw,
                error=exc.message,
            )
        return ExtractionResult(value=_dump(record), raw=raw)


def _dump(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True, exclude_unset=True)
