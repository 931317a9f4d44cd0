"""Unit tests for structured-output decoding and extraction."""

from __future__ import annotations

import json
from typing import Any

import pytest

from rag_workshop.chat.structured import (
    ArtistInfo,
    MusicQuestion,
    PatientJournal,
    StructuredOutputService,
    decode_list,
    decode_mapping,
    decode_model,
)
from rag_workshop.exceptions import ParseFailure

from conftest import ScriptedChatModel

QUESTION = MusicQuestion(genre="rock", instrument="piano")


def _service(*replies: str) -> tuple[StructuredOutputService, ScriptedChatModel, list[dict[str, Any]]]:
    model = ScriptedChatModel(*replies)
    factory_calls: list[dict[str, Any]] = []

    def factory(**kwargs: Any) -> ScriptedChatModel:
        factory_calls.append(kwargs)
        return model

    return StructuredOutputService(factory), model, factory_calls


# ── Decoders ───────────────────────────────────────────────────────────


class TestDecoders:
    def test_decode_model(self) -> None:
        """A JSON object decodes into the model."""
        info = decode_model('{"name": "Elton John", "band": "Elton John Band"}', ArtistInfo)
        assert info == ArtistInfo(name="Elton John", band="Elton John Band")

    def test_decode_model_fenced_json(self) -> None:
        """JSON inside a markdown fence is accepted."""
        text = '```json\n{"name": "Rick Wakeman", "band": "Yes"}\n```'
        assert decode_model(text, ArtistInfo).band == "Yes"

    def test_decode_model_missing_field(self) -> None:
        """A missing field raises ParseFailure with the raw text."""
        with pytest.raises(ParseFailure) as exc_info:
            decode_model('{"name": "Elton John"}', ArtistInfo)
        assert exc_info.value.details["errors"][0]["loc"] == ["band"]
        assert exc_info.value.raw == '{"name": "Elton John"}'

    @pytest.mark.parametrize("text", ["not json at all", "[1, 2, 3]"])
    def test_decode_model_rejects_non_objects(self, text: str) -> None:
        """Non-JSON and JSON arrays are rejected."""
        with pytest.raises(ParseFailure):
            decode_model(text, ArtistInfo)

    def test_decode_mapping(self) -> None:
        """A JSON object decodes into a dict."""
        assert decode_mapping('{"Yes": "Rick Wakeman"}') == {"Yes": "Rick Wakeman"}

    def test_decode_list_json_and_csv(self) -> None:
        """Lists decode from JSON arrays or comma-separated text."""
        assert decode_list('["Elton John", "Billy Joel"]') == ["Elton John", "Billy Joel"]
        assert decode_list("Elton John, Billy Joel, Rick Wakeman") == ["Elton John", "Billy Joel", "Rick Wakeman"]

    @pytest.mark.parametrize("text", ["", "[]", "[1, 2"])
    def test_decode_list_failures(self, text: str) -> None:
        """Empty and malformed lists raise ParseFailure."""
        with pytest.raises(ParseFailure):
            decode_list(text)


# ── Service ────────────────────────────────────────────────────────────


class TestStructuredOutputService:
    def test_artist_info_uses_json_mode(self) -> None:
        """artist_info asks the model for JSON at temperature 0."""
        service, model, factory_calls = _service('{"name": "Elton John", "band": "Elton John Band"}')
        assert service.artist_info(QUESTION).name == "Elton John"
        assert factory_calls == [{"temperature": 0.0, "json_mode": True}]
        prompt = model.calls[0][0].content
        assert "rock" in prompt and "piano" in prompt

    def test_artist_info_bad_output_raises(self) -> None:
        """A prose reply raises ParseFailure."""
        service, _, _ = _service("Elton John plays in his own band")
        with pytest.raises(ParseFailure):
            service.artist_info(QUESTION)

    def test_artist_names(self) -> None:
        """artist_names returns the listed names."""
        service, _, _ = _service("Elton John, Billy Joel, Rick Wakeman")
        assert service.artist_names(QUESTION) == ["Elton John", "Billy Joel", "Rick Wakeman"]

    def test_artist_map(self) -> None:
        """artist_map returns band to artist pairs."""
        service, _, _ = _service('{"Yes": "Rick Wakeman", "Queen": "Freddie Mercury"}')
        assert service.artist_map(QUESTION)["Queen"] == "Freddie Mercury"


class TestExtraction:
    NOTE = "Patient Bilbo Baggins weighs 41 kg. Diagnosis: too much second breakfast."

    def test_full_extraction(self) -> None:
        """A complete reply fills the journal."""
        reply = json.dumps(
            {
                "fullName": "Bilbo Baggins",
                "observations": [{"type": "BODY_WEIGHT", "content": "41 kg"}],
                "diagnosis": {"content": "too much second breakfast"},
            }
        )
        service, _, _ = _service(reply)
        result = service.extract(self.NOTE)
        assert result.error is None
        assert not result.partial
        assert result.value["fullName"] == "Bilbo Baggins"
        assert result.value["observations"][0]["type"] == "BODY_WEIGHT"

    def test_unknown_fields_stay_unset(self) -> None:
        """Fields the reply omits stay unset."""
        service, _, _ = _service('{"fullName": "Bilbo Baggins"}')
        result = service.extract(self.NOTE)
        assert result.value == {"fullName": "Bilbo Baggins"}

    def test_invalid_field_is_dropped(self) -> None:
        """An invalid field is dropped and the result is partial."""
        reply = json.dumps({"fullName": "Bilbo Baggins", "observations": [{"type": "MOOD", "content": "happy"}]})
        service, _, _ = _service(reply)
        result = service.extract(self.NOTE)
        assert result.partial
        assert result.value == {"fullName": "Bilbo Baggins"}
        assert result.error is not None

    def test_unparseable_reply_yields_no_value(self) -> None:
        """A reply without JSON yields no value and keeps the raw text."""
        service, _, _ = _service("I could not find anything.")
        result = service.extract(self.NOTE)
        assert result.value is None
        assert not result.partial
        assert result.raw == "I could not find anything."

    def test_snake_case_names_accepted(self) -> None:
        """Snake-case field names validate too."""
        journal = PatientJournal.model_validate({"full_name": "Frodo"})
        assert journal.full_name == "Frodo"
