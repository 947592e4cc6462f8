"""Tests for the sprint closure audit."""

from conftest import FIXED_NOW
from services.closure_audit import audit_sprint_closure
from services.data_source import InMemoryDataSource


def clock():
    return FIXED_NOW


class TestAuditSprintClosure:
    def test_complete_sprint_is_clean(self, closed_sprint_source):
        report = audit_sprint_closure(closed_sprint_source, 100, clock)
        assert report["isValid"] is True
        assert report["issues"] == []
        assert report["errors"] == []

    def test_missing_status_at_close(self, team_sprint_source):
        report = audit_sprint_closure(team_sprint_source, 100, clock)
        assert report["isValid"] is True
        issue = report["issues"][0]
        assert issue["type"] == "missing_status_at_close"
        assert issue["count"] == 1
        assert issue["total"] == 4
        assert issue["itemKeys"] == ["OBD-13"]

    def test_missing_complete_date(self, closed_sprint_source, closed_sprint_row):
        closed_sprint_source.add_sprint(dict(closed_sprint_row, complete_date=None))
        report = audit_sprint_closure(closed_sprint_source, 100, clock)
        assert [i["type"] for i in report["issues"]] == ["missing_complete_date"]

    def test_sprint_without_rows(self, closed_sprint_row):
        report = audit_sprint_closure(InMemoryDataSource(sprints=[closed_sprint_row]), 100, clock)
        assert report["isValid"] is True
        assert "no membership rows" in report["warnings"][0]

    def test_active_sprint_is_not_audited(self, active_sprint_row):
        report = audit_sprint_closure(InMemoryDataSource(sprints=[active_sprint_row]), 200, clock)
        assert report["isValid"] is False
        assert "is not closed" in report["warnings"][0]

    def test_audit_writes_nothing(self, team_sprint_source):
        before = team_sprint_source.fetch_sprint_membership(100)
        audit_sprint_closure(team_sprint_source, 100, clock)
        assert team_sprint_source.fetch_sprint_membership(100) == before
