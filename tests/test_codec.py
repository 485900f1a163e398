"""Test the record codec."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from agent_store.core.exceptions import ConstraintError, QueryError
from agent_store.storage.codec import (
    Decoded,
    Raw,
    decode_json,
    decode_row,
    encode_bignumber,
    encode_json,
    encode_record,
    encode_timestamp,
    encode_value,
    parse_timestamp,
)
from agent_store.storage.schemas import TRACES_SCHEMA
from agent_store.storage.types import ColumnDefinition, ColumnType, TableSchema


class TestJson:
    def test_valid_json_decodes(self):
        assert decode_json('{"a": [1, 2]}') == Decoded({"a": [1, 2]})

    def test_malformed_json_is_raw(self):
        result = decode_json("invalid json")
        assert isinstance(result, Raw)
        assert result.value == "invalid json"

    def test_null_decodes_to_none(self):
        assert decode_json(None) == Decoded(None)

    def test_strings_stored_verbatim(self):
        assert encode_json("plain text") == "plain text"

    def test_unicode_kept(self):
        assert encode_json({"text": "特殊字符"}) == '{"text": "特殊字符"}'

    def test_datetime_inside_json(self):
        stamp = datetime(2025, 1, 1, tzinfo=UTC)
        assert encode_json({"at": stamp}) == '{"at": "2025-01-01T00:00:00+00:00"}'


class TestTimestamps:
    def test_naive_is_utc(self):
        assert parse_timestamp(datetime(2025, 3, 14, 23, 30)).tzinfo == UTC

    def test_iso_string_with_z(self):
        assert parse_timestamp("2025-03-14T23:30:20.930Z") == datetime(2025, 3, 14, 23, 30, 20, 930000, tzinfo=UTC)

    def test_offset_converted(self):
        stamp = datetime(2025, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert encode_timestamp(stamp) == "2025-01-01T10:00:00.000000+00:00"

    def test_text_order_is_chronological(self):
        early = encode_timestamp(datetime(2025, 1, 1, 0, 0, 0, 5, tzinfo=UTC))
        late = encode_timestamp(datetime(2025, 1, 1, 0, 0, 1, tzinfo=UTC))
        assert len(early) == len(late)
        assert early < late

    def test_garbage_rejected(self):
        with pytest.raises(ConstraintError):
            parse_timestamp("not a date")


class TestBigNumbers:
    def test_int_and_decimal(self):
        assert encode_bignumber(1718000000000000001) == "1718000000000000001"
        assert encode_bignumber(Decimal("12.5")) == "12.5"

    def test_float_rejected(self):
        with pytest.raises(ConstraintError):
            encode_bignumber(1.5)

    def test_non_numeric_rejected(self):
        with pytest.raises(ConstraintError):
            encode_bignumber("12abc")

    def test_non_ascii_digits_rejected(self):
        with pytest.raises(ConstraintError):
            encode_bignumber("\u0663\u0664")


class TestIntegers:
    column = ColumnDefinition(ColumnType.INTEGER)

    def test_numeric_strings(self):
        assert encode_value(self.column, "42") == 42
        assert encode_value(self.column, " -7 ") == -7

    @pytest.mark.parametrize("value", ["--5", "-", "\u00b2", "\u0663", "1.5", ""])
    def test_malformed_strings_rejected(self, value):
        with pytest.raises(ConstraintError):
            encode_value(self.column, value)

    def test_malformed_string_in_record_names_column(self):
        schema = TableSchema(
            columns={
                "id": ColumnDefinition(ColumnType.TEXT, primary_key=True),
                "n": ColumnDefinition(ColumnType.INTEGER),
            }
        )
        with pytest.raises(ConstraintError) as exc_info:
            encode_record(schema, {"id": "a", "n": "--5"})
        assert exc_info.value.details["column"] == "n"


class TestRecords:
    def test_unknown_column_rejected(self):
        schema = TableSchema(columns={"id": ColumnDefinition(ColumnType.TEXT, primary_key=True)})
        with pytest.raises(QueryError):
            encode_record(schema, {"id": "a", "other": 1})

    def test_error_names_column(self):
        with pytest.raises(ConstraintError) as exc_info:
            encode_record(TRACES_SCHEMA, {"start_time": 1.5})
        assert exc_info.value.details["column"] == "start_time"

    def test_decode_row_types(self):
        schema = TableSchema(
            columns={
                "id": ColumnDefinition(ColumnType.TEXT, primary_key=True),
                "flag": ColumnDefinition(ColumnType.BOOLEAN),
                "data": ColumnDefinition(ColumnType.JSON),
                "at": ColumnDefinition(ColumnType.TIMESTAMP),
            }
        )
        row = decode_row(
            schema,
            {"id": "a", "flag": 1, "data": "{broken", "at": "2025-01-01T00:00:00.000000+00:00", "extra": 7},
        )
        assert row == {
            "id": "a",
            "flag": True,
            "data": "{broken",
            "at": datetime(2025, 1, 1, tzinfo=UTC),
            "extra": 7,
        }
