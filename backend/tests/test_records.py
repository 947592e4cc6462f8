"""Tests for row normalization and field aliases."""

import pytest
from datetime import datetime

from services.field_aliases import extract_property_value, flatten_properties, resolve_alias
from services.records import (
    normalize_change_record,
    normalize_membership,
    normalize_sprint,
    normalize_work_item,
    parse_points,
)


class TestResolveAlias:
    def test_first_non_empty_alias_wins(self):
        payload = {"current_story_points": None, "storyPoints": "", "customfield_10002": 3}
        assert resolve_alias(payload, "current_story_points") == 3

    def test_priority_order(self):
        payload = {"customfield_10016": 8, "Story Points": 5}
        assert resolve_alias(payload, "current_story_points") == 5

    def test_missing_field(self):
        assert resolve_alias({}, "assignee_id") is None


class TestExtractPropertyValue:
    """Test extraction over the tagged property kinds."""

    @pytest.mark.parametrize("prop,expected", [
        ({"type": "title", "title": [{"plain_text": "Login "}, {"plain_text": "page"}]}, "Login page"),
        ({"type": "rich_text", "rich_text": [{"plain_text": "squad-a"}]}, "squad-a"),
        ({"type": "number", "number": 5}, 5),
        ({"type": "select", "select": {"name": "Sprint 3"}}, "Sprint 3"),
        ({"type": "select", "select": None}, None),
        ({"type": "status", "status": {"name": "In Progress"}}, "In Progress"),
        ({"type": "checkbox", "checkbox": True}, True),
        ({"type": "date", "date": {"start": "2024-01-05"}}, "2024-01-05"),
        ({"type": "date", "date": None}, None),
        ({"type": "formula", "formula": {"type": "number", "number": 13}}, 13),
    ])
    def test_known_kinds(self, prop, expected):
        assert extract_property_value(prop) == expected

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError):
            extract_property_value({"type": "relation", "relation": []})

    def test_flatten_leaves_plain_rows_alone(self):
        row = {"id": 1, "current_status": "Done"}
        assert flatten_properties(row) is row


class TestNormalizeWorkItem:
    def test_store_row(self):
        item = normalize_work_item({
            "id": 42,
            "issue_key": "OBD-42",
            "current_status": "QA",
            "current_story_points": "3",
            "assignee_id": 7,
            "squad_id": 1,
            "created_date": "2024-01-02T10:00:00.000Z",
            "status_by_sprint": {"Sprint 1": "Done"},
        })
        assert item["id"] == "42"
        assert item["key"] == "OBD-42"
        assert item["current_story_points"] == 3.0
        assert item["assignee_id"] == "7"
        assert item["squad_id"] == "1"
        assert item["created_at"] == datetime(2024, 1, 2, 10, 0, 0)
        assert item["status_by_sprint"] == {"Sprint 1": "Done"}
        assert item["dev_start_at"] is None

    def test_provider_page(self):
        item = normalize_work_item({
            "id": "page-1",
            "properties": {
                "Key": {"type": "title", "title": [{"plain_text": "ROAD-1"}]},
                "Status": {"type": "status", "status": {"name": "Doing"}},
                "Story Points": {"type": "number", "number": 2},
                "Squad": {"type": "select", "select": {"name": "squad-b"}},
                "Sprint": {"type": "select", "select": {"name": "Sprint 9"}},
                "Created": {"type": "date", "date": {"start": "2024-02-01"}},
            },
        })
        assert item["id"] == "page-1"
        assert item["key"] == "ROAD-1"
        assert item["current_status"] == "Doing"
        assert item["current_story_points"] == 2.0
        assert item["squad_id"] == "squad-b"
        assert item["current_sprint"] == "Sprint 9"
        assert item["created_at"] == datetime(2024, 2, 1)

    def test_non_dict_status_by_sprint(self):
        assert normalize_work_item({"id": 1, "status_by_sprint": "bad"})["status_by_sprint"] == {}


class TestNormalizeOtherRows:
    def test_change_record_assignee_values_are_strings(self):
        record = normalize_change_record({
            "issue_id": 5, "field_name": "assignee", "from_value": None, "to_value": 12,
            "changed_at": "2024-01-03T08:30:00Z",
        })
        assert record["item_id"] == "5"
        assert record["from_value"] is None
        assert record["to_value"] == "12"
        assert record["changed_at"] == datetime(2024, 1, 3, 8, 30, 0)

    def test_sprint_row(self):
        sprint = normalize_sprint({
            "id": 3, "sprint_name": " OBD Sprint 3 ", "state": "CLOSED",
            "start_date": "2024-01-01T00:00:00+00:00", "end_date": None,
        })
        assert sprint["id"] == "3"
        assert sprint["name"] == "OBD Sprint 3"
        assert sprint["state"] == "closed"
        assert sprint["start_date"] == datetime(2024, 1, 1)
        assert sprint["end_date"] is None

    def test_unknown_sprint_state(self):
        assert normalize_sprint({"id": 1, "state": "weird"})["state"] is None

    def test_membership_row(self):
        membership = normalize_membership({
            "issue_id": 5, "sprint_id": 3, "status_at_sprint_close": "Done",
            "story_points_at_close": "5", "story_points_at_start": None,
        })
        assert membership == {
            "item_id": "5",
            "sprint_id": "3",
            "status_at_close": "Done",
            "story_points_at_close": 5.0,
            "story_points_at_start": None,
        }

    @pytest.mark.parametrize("value,expected", [(None, None), ("", None), ("x", None), ("2.5", 2.5), (3, 3.0)])
    def test_parse_points(self, value, expected):
        assert parse_points(value) == expected
