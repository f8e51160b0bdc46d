"""
Unit tests for audit payload encoding, filters and CSV export.
"""

import csv
import enum
import io
import json
import uuid
from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from app.core.audit import (
    SERIALIZATION_ERROR_PAYLOAD,
    AuditAction,
    parse_details,
    serialize_details,
)
from app.core.exceptions import ValidationError
from app.features.audit.service import (
    CSV_COLUMNS,
    export_filename,
    parse_bound,
    render_csv,
    user_label,
)


class Color(enum.Enum):
    RED = "red"


@pytest.mark.unit
class TestSerializeDetails:
    def test_none(self):
        assert serialize_details(None) is None

    def test_rich_values(self):
        ident = uuid.UUID("12345678-1234-5678-1234-567812345678")
        raw = serialize_details({
            "when": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            "day": date(2024, 5, 1),
            "color": Color.RED,
            "action": AuditAction.DELETE,
            "id": ident,
            "tags": {"b", "a"},
        })

        assert json.loads(raw) == {
            "when": "2024-05-01T12:00:00+00:00",
            "day": "2024-05-01",
            "color": "red",
            "action": "DELETE",
            "id": str(ident),
            "tags": ["a", "b"],
        }

    def test_unserializable_is_replaced(self):
        raw = serialize_details({"handle": object()})

        assert json.loads(raw) == SERIALIZATION_ERROR_PAYLOAD

    def test_circular_is_replaced(self):
        payload = {}
        payload["self"] = payload

        assert json.loads(serialize_details(payload)) == SERIALIZATION_ERROR_PAYLOAD

    def test_non_ascii_kept(self):
        assert "Überblick" in serialize_details({"name": "Überblick.pdf"})


@pytest.mark.unit
class TestParseDetails:
    def test_json(self):
        assert parse_details('{"a": 1}') == {"a": 1}

    def test_plain_text(self):
        assert parse_details("not json") == "not json"

    def test_none(self):
        assert parse_details(None) is None


@pytest.mark.unit
class TestParseBound:
    def test_date_only_lower_bound(self):
        assert parse_bound("2024-03-01") == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_date_only_upper_bound_covers_day(self):
        bound = parse_bound("2024-03-01", end=True)

        assert bound.date() == date(2024, 3, 1)
        assert (bound.hour, bound.minute, bound.second) == (23, 59, 59)

    def test_full_timestamp_with_z(self):
        assert parse_bound("2024-03-01T10:30:00Z") == datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)

    def test_empty(self):
        assert parse_bound(None) is None
        assert parse_bound("") is None

    def test_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_bound("yesterday")
        assert exc_info.value.message == "Invalid date: yesterday"


@pytest.mark.unit
class TestCsvExport:
    def test_user_label(self):
        assert user_label("Ada", "Lovelace", "ada@example.com") == "Ada Lovelace (ada@example.com)"
        assert user_label(None, None, "ada@example.com") == "ada@example.com"
        assert user_label(None, None, None) == ""

    def test_export_filename(self):
        assert export_filename(date(2024, 7, 4)) == "audit_logs_2024-07-04.csv"

    def test_render_header_and_rows(self):
        entry = SimpleNamespace(
            id=7,
            created_at=datetime(2024, 7, 4, 8, 0),
            action="DELETE",
            resource_type="FILE",
            resource_id="f-1",
            details='{"name": "a, b.pdf"}',
        )
        system_entry = SimpleNamespace(
            id=8,
            created_at=datetime(2024, 7, 4, 9, 0, tzinfo=timezone.utc),
            action="CLEANUP",
            resource_type="SYSTEM",
            resource_id=None,
            details=None,
        )

        text = render_csv([
            (entry, "Ada", "Lovelace", "ada@example.com", "Acme"),
            (system_entry, None, None, None, None),
        ])
        rows = list(csv.reader(io.StringIO(text)))

        assert rows[0] == CSV_COLUMNS
        assert rows[1] == [
            "7",
            "2024-07-04T08:00:00+00:00",
            "DELETE",
            "FILE",
            "f-1",
            '{"name": "a, b.pdf"}',
            "Ada Lovelace (ada@example.com)",
            "Acme",
        ]
        assert rows[2][4:] == ["", "", "", ""]
