"""Tests for the definition part codec."""

from __future__ import annotations

import base64
from collections.abc import Callable

import pytest

from dataflow_definition.core.codec import (
    decode_definition,
    decode_text,
    dump_json,
    encode_definition,
    encode_text,
    read_part_json,
    read_part_text,
    replace_part_json,
    replace_part_text,
)
from dataflow_definition.models import (
    MASHUP_PATH,
    QUERY_METADATA_PATH,
    DataflowDefinition,
    DefinitionPart,
)


class TestTextCodec:
    def test_round_trips_utf8(self) -> None:
        text = 'section Section1;\r\nshared #"Zoë" = "ü";'
        assert decode_text(encode_text(text)) == text

    def test_invalid_base64_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            decode_text("not base64 !!!")

    @pytest.mark.parametrize("line_break", ["\n", "\r\n"], ids=["lf", "crlf"])
    def test_decodes_line_wrapped_payload(self, line_break: str) -> None:
        text = "section Section1;\r\n" + "".join(f"shared Q{i} = {i};\r\n" for i in range(10))
        payload = base64.encodebytes(text.encode("utf-8")).decode("ascii").replace("\n", line_break)

        assert line_break in payload.strip()
        assert decode_text(payload) == text

    def test_dump_json_keeps_insertion_order(self) -> None:
        assert dump_json({"b": 1, "a": "ü"}) == '{\n  "b": 1,\n  "a": "ü"\n}'


class TestDecodeDefinition:
    def test_decodes_known_parts(self, sample_definition: DataflowDefinition, simple_document: str) -> None:
        decoded = decode_definition(sample_definition)

        assert decoded.mashup_query == simple_document
        assert decoded.query_metadata is not None
        assert decoded.query_metadata["queriesMetadata"]["Orders"]["queryId"] == "orders-id"
        assert decoded.platform_metadata == {
            "metadata": {"type": "Dataflow", "displayName": "Sales"},
            "config": {"version": "2.0"},
        }
        assert decoded.diagnostics == []
        assert len(decoded.raw_parts) == 3

    def test_none_definition_yields_empty_view(self) -> None:
        decoded = decode_definition(None)
        assert decoded.mashup_query is None
        assert decoded.query_metadata is None
        assert decoded.platform_metadata is None
        assert decoded.raw_parts == []
        assert decoded.diagnostics == []

    def test_paths_match_case_insensitively(self) -> None:
        definition = DataflowDefinition(
            parts=[
                DefinitionPart(path="QUERYMETADATA.JSON", payload=encode_text('{"documentLocale": "en-US"}')),
                DefinitionPart(path="Mashup.PQ", payload=encode_text("section Section1;")),
            ]
        )
        decoded = decode_definition(definition)
        assert decoded.query_metadata == {"documentLocale": "en-US"}
        assert decoded.mashup_query == "section Section1;"

    def test_bad_part_is_reported_and_others_still_decoded(self) -> None:
        definition = DataflowDefinition(
            parts=[
                DefinitionPart(path=QUERY_METADATA_PATH, payload="%%% not base64"),
                DefinitionPart(path=MASHUP_PATH, payload=encode_text("section Section1;")),
            ]
        )
        decoded = decode_definition(definition)

        assert decoded.query_metadata is None
        assert decoded.mashup_query == "section Section1;"
        assert len(decoded.diagnostics) == 1
        assert QUERY_METADATA_PATH in decoded.diagnostics[0]

    def test_line_wrapped_part_decodes_without_diagnostics(self) -> None:
        text = "section Section1;\r\n" + "".join(f"shared Q{i} = {i};\r\n" for i in range(10))
        payload = base64.encodebytes(text.encode("utf-8")).decode("ascii")
        decoded = decode_definition(DataflowDefinition(parts=[DefinitionPart(path=MASHUP_PATH, payload=payload)]))

        assert decoded.mashup_query == text
        assert decoded.diagnostics == []

    def test_duplicate_path_is_reported_and_first_wins(self) -> None:
        definition = DataflowDefinition(
            parts=[
                DefinitionPart(path=MASHUP_PATH, payload=encode_text("section First;")),
                DefinitionPart(path="Mashup.PQ", payload=encode_text("section Second;")),
            ]
        )
        decoded = decode_definition(definition)

        assert decoded.mashup_query == "section First;"
        assert decoded.diagnostics == ["Part 'Mashup.PQ' duplicates an earlier 'mashup.pq' part; ignoring it"]

    def test_invalid_json_is_reported(self) -> None:
        definition = DataflowDefinition(
            parts=[DefinitionPart(path=QUERY_METADATA_PATH, payload=encode_text("{not json"))]
        )
        decoded = decode_definition(definition)
        assert decoded.query_metadata is None
        assert decoded.diagnostics and "JSON" in decoded.diagnostics[0]

    def test_json_that_is_not_an_object_is_reported(self) -> None:
        definition = DataflowDefinition(parts=[DefinitionPart(path=QUERY_METADATA_PATH, payload=encode_text("[1, 2]"))])
        decoded = decode_definition(definition)
        assert decoded.query_metadata is None
        assert len(decoded.diagnostics) == 1

    def test_empty_payload_is_reported(self) -> None:
        definition = DataflowDefinition(parts=[DefinitionPart(path=MASHUP_PATH, payload="")])
        decoded = decode_definition(definition)
        assert decoded.mashup_query is None
        assert decoded.diagnostics == [f"Part '{MASHUP_PATH}' has an empty payload"]

    def test_unknown_parts_are_ignored(self) -> None:
        definition = DataflowDefinition(parts=[DefinitionPart(path="notes.txt", payload="%%%")])
        decoded = decode_definition(definition)
        assert decoded.diagnostics == []
        assert decoded.raw_parts[0].path == "notes.txt"


class TestEncodeDefinition:
    def test_unmodified_definition_is_byte_identical(self, sample_definition: DataflowDefinition) -> None:
        encoded = encode_definition(decode_definition(sample_definition))
        assert encoded.to_wire() == sample_definition.to_wire()
        assert encode_definition(decode_definition(encoded)).to_wire() == encoded.to_wire()

    def test_modified_fields_are_re_encoded(self, sample_definition: DataflowDefinition) -> None:
        decoded = decode_definition(sample_definition)
        decoded.mashup_query = "section Section1;\r\nshared A = 1;"
        encoded = encode_definition(decoded)

        assert read_part_text(encoded, MASHUP_PATH) == "section Section1;\r\nshared A = 1;"
        assert [p.path for p in encoded.parts] == [p.path for p in sample_definition.parts]

    def test_undecodable_and_unknown_parts_pass_through(self) -> None:
        parts = [
            DefinitionPart(path=QUERY_METADATA_PATH, payload="%%%"),
            DefinitionPart(path="extra.bin", payload="AAEC", payload_type="InlineBase64"),
        ]
        encoded = encode_definition(decode_definition(DataflowDefinition(parts=parts)))
        assert [p.payload for p in encoded.parts] == ["%%%", "AAEC"]

    def test_only_first_duplicate_is_re_encoded(self) -> None:
        second = encode_text("section Second;")
        definition = DataflowDefinition(
            parts=[
                DefinitionPart(path=MASHUP_PATH, payload=encode_text("section First;")),
                DefinitionPart(path=MASHUP_PATH, payload=second),
            ]
        )
        decoded = decode_definition(definition)
        decoded.mashup_query = "section Edited;"
        encoded = encode_definition(decoded)

        assert [p.payload for p in encoded.parts] == [encode_text("section Edited;"), second]

    def test_wire_shape_uses_payload_type_alias(self) -> None:
        definition = DataflowDefinition(parts=[DefinitionPart(path=MASHUP_PATH, payload="eA==")])
        assert definition.to_wire() == {
            "parts": [{"path": MASHUP_PATH, "payload": "eA==", "payloadType": "InlineBase64"}]
        }


class TestPartHelpers:
    def test_replace_keeps_original_path_spelling(self) -> None:
        definition = DataflowDefinition(parts=[DefinitionPart(path="Mashup.pq", payload=encode_text("old"))])
        updated = replace_part_text(definition, MASHUP_PATH, "new")

        assert [p.path for p in updated.parts] == ["Mashup.pq"]
        assert read_part_text(updated, MASHUP_PATH) == "new"
        assert read_part_text(definition, MASHUP_PATH) == "old"

    def test_replace_appends_missing_part(self) -> None:
        updated = replace_part_json(DataflowDefinition(), QUERY_METADATA_PATH, {"documentLocale": "en-US"})
        assert [p.path for p in updated.parts] == [QUERY_METADATA_PATH]
        assert read_part_json(updated, QUERY_METADATA_PATH) == {"documentLocale": "en-US"}

    def test_read_helpers_return_none_for_bad_parts(
        self, definition_factory: Callable[..., DataflowDefinition]
    ) -> None:
        definition = definition_factory(
            extra=[
                DefinitionPart(path=MASHUP_PATH, payload="%%%"),
                DefinitionPart(path=QUERY_METADATA_PATH, payload=encode_text('"just a string"')),
            ]
        )
        assert read_part_text(definition, MASHUP_PATH) is None
        assert read_part_json(definition, QUERY_METADATA_PATH) is None
        assert read_part_text(definition, "missing.txt") is None
