"""Shared fixtures for sprint metrics engine tests."""

import pytest
import sys
import os
from datetime import datetime, timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.data_source import InMemoryDataSource
from services.engine import MetricsEngine
from services.rollup_store import InMemoryRollupStore

FIXED_NOW = datetime(2024, 3, 1, 12, 0, 0)
DAY0 = datetime(2024, 1, 1, 9, 0, 0)


def iso(moment: datetime) -> str:
    """Store-style timestamp string."""
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def status_change(issue_id, from_value, to_value, changed_at):
    return {
        "issue_id": issue_id,
        "field_name": "status",
        "from_value": from_value,
        "to_value": to_value,
        "changed_at": iso(changed_at),
    }


def assignee_change(issue_id, from_value, to_value, changed_at):
    return {
        "issue_id": issue_id,
        "field_name": "assignee",
        "from_value": from_value,
        "to_value": to_value,
        "changed_at": iso(changed_at),
    }


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock():
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def closed_sprint_row():
    """Three-day sprint closed on day 2."""
    return {
        "id": 100,
        "sprint_name": "OBD Sprint 1",
        "squad_id": "squad-a",
        "start_date": iso(DAY0),
        "end_date": iso(DAY0 + timedelta(days=2)),
        "complete_date": iso(DAY0 + timedelta(days=2)),
        "state": "closed",
    }


@pytest.fixture
def active_sprint_row():
    """Sprint running around FIXED_NOW."""
    return {
        "id": 200,
        "sprint_name": "OBD Sprint 5",
        "squad_id": "squad-a",
        "start_date": iso(FIXED_NOW - timedelta(days=3)),
        "end_date": iso(FIXED_NOW + timedelta(days=7)),
        "complete_date": None,
        "state": "active",
    }


@pytest.fixture
def single_item_row():
    """Item whose live values differ from what was frozen at close."""
    return {
        "id": 1,
        "issue_key": "OBD-1",
        "current_status": "Done",
        "current_story_points": 8,
        "assignee_id": "dev-1",
        "squad_id": "squad-a",
        "initiative_id": "init-1",
        "created_date": iso(DAY0 - timedelta(days=10)),
        "dev_start_date": iso(DAY0),
        "dev_close_date": iso(DAY0 + timedelta(days=2)),
    }


@pytest.fixture
def single_item_status_history():
    return [
        status_change(1, "To Do", "IN PROGRESS", DAY0),
        status_change(1, "IN PROGRESS", "DONE", DAY0 + timedelta(days=2)),
    ]


@pytest.fixture
def closed_sprint_source(closed_sprint_row, single_item_row, single_item_status_history):
    """One item, 5 SP frozen at close, no assignee history."""
    return InMemoryDataSource(
        work_items=[single_item_row],
        history=single_item_status_history,
        sprints=[closed_sprint_row],
        memberships=[{
            "issue_id": 1,
            "sprint_id": 100,
            "status_at_sprint_close": "Done",
            "story_points_at_close": 5,
            "story_points_at_start": 5,
        }],
    )


@pytest.fixture
def team_sprint_source(closed_sprint_row):
    """Closed sprint with four items across two developers."""
    return InMemoryDataSource(
        work_items=[
            {"id": 10, "issue_key": "OBD-10", "current_status": "Done",
             "current_story_points": 3, "assignee_id": "dev-1", "squad_id": "squad-a",
             "initiative_id": "init-1", "created_date": iso(DAY0 - timedelta(days=5)),
             "dev_start_date": iso(DAY0), "dev_close_date": iso(DAY0 + timedelta(days=1))},
            {"id": 11, "issue_key": "OBD-11", "current_status": "In Progress",
             "current_story_points": 5, "assignee_id": "dev-1", "squad_id": "squad-a",
             "initiative_id": "init-1", "created_date": iso(DAY0 - timedelta(days=5))},
            {"id": 12, "issue_key": "OBD-12", "current_status": "Blocked",
             "current_story_points": 2, "assignee_id": "dev-2", "squad_id": "squad-a",
             "initiative_id": "init-2", "created_date": iso(DAY0 + timedelta(days=1))},
            {"id": 13, "issue_key": "OBD-13", "current_status": "Backlog",
             "current_story_points": None, "assignee_id": None, "squad_id": "squad-a",
             "created_date": iso(DAY0 - timedelta(days=5))},
        ],
        sprints=[closed_sprint_row],
        memberships=[
            {"issue_id": 10, "sprint_id": 100, "status_at_sprint_close": "Done",
             "story_points_at_close": 3},
            {"issue_id": 11, "sprint_id": 100, "status_at_sprint_close": "In Progress",
             "story_points_at_close": 5},
            {"issue_id": 12, "sprint_id": 100, "status_at_sprint_close": "Impediment",
             "story_points_at_close": 2},
            {"issue_id": 13, "sprint_id": 100, "status_at_sprint_close": None},
        ],
    )


@pytest.fixture
def rollup_store():
    return InMemoryRollupStore()


@pytest.fixture
def engine(team_sprint_source, rollup_store, clock):
    return MetricsEngine(team_sprint_source, rollup_store, clock=clock)


@pytest.fixture
def app(team_sprint_source, rollup_store):
    """Create Flask test app backed by in-memory stores."""
    from app import create_app
    app = create_app(
        data_source=team_sprint_source,
        rollup_store=rollup_store,
        config={"SUPABASE_URL": None, "SUPABASE_KEY": None},
    )
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()
