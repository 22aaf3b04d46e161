"""Tests for the Incident aggregate and its status workflow."""

import pytest

from src.config import IncidentStatus, Role
from src.core import InvalidTransitionException, ValidationException
from src.incidents.domain import Incident, WorkflowPolicy


@pytest.fixture
def reporter(principal):
    return principal(Role.EMPLOYEE, user_id="emp-1", name="Erin")


@pytest.fixture
def responder(principal):
    return principal(Role.RESPONDER, user_id="resp-1", name="Riley")


@pytest.fixture
def incident(reporter):
    return Incident.open("inc-1", "Printer jam", "Floor 3 printer is jammed", "Facility", "Low", reporter)


class TestWorkflowPolicy:
    """Open -> Investigating -> Resolved, Resolved terminal."""

    def test_forward_transitions_allowed(self):
        assert WorkflowPolicy.can_transition("Open", "Investigating")
        assert WorkflowPolicy.can_transition("Investigating", "Resolved")

    def test_skipping_and_reopening_rejected(self):
        assert not WorkflowPolicy.can_transition("Open", "Resolved")
        assert not WorkflowPolicy.can_transition("Resolved", "Open")
        assert not WorkflowPolicy.can_transition("Investigating", "Open")

    def test_same_status_allowed(self):
        for status in ("Open", "Investigating", "Resolved"):
            assert WorkflowPolicy.can_transition(status, status)

    def test_unknown_status_is_validation_error(self):
        with pytest.raises(ValidationException):
            WorkflowPolicy.validate("Open", "Closed")


class TestIncidentOpen:
    def test_initial_history_and_activity(self, incident, reporter):
        assert incident.status == IncidentStatus.OPEN
        assert len(incident.status_history) == 1
        first = incident.status_history[0]
        assert first.from_status is None
        assert first.to_status == "Open"
        assert first.note == "Created"
        assert incident.activity[0].type == "created"
        assert incident.activity[0].message == "Incident created"
        assert incident.reported_by == reporter.user_id

    def test_invalid_category_rejected(self, reporter):
        with pytest.raises(ValidationException):
            Incident.open("inc-2", "t", "d", "Network", "Low", reporter)

    def test_invalid_severity_rejected(self, reporter):
        with pytest.raises(ValidationException):
            Incident.open("inc-2", "t", "d", "IT", "Urgent", reporter)


class TestChangeStatus:
    def test_transition_appends_history(self, incident, responder):
        assert incident.change_status("Investigating", responder, "Looking into it") is True
        assert incident.status == "Investigating"
        assert incident.status_history[-1].from_status == "Open"
        assert incident.status_history[-1].to_status == "Investigating"
        assert incident.status_history[-1].changed_by == responder.user_id
        assert incident.activity[-1].message == "Status changed to Investigating"
        assert incident.activity[-1].meta == {"status": "Investigating"}

    def test_history_tail_tracks_status(self, incident, responder):
        incident.change_status("Investigating", responder)
        incident.change_status("Resolved", responder, "Cleared the paper path")
        assert incident.status_history[-1].to_status == incident.status
        assert [h.to_status for h in incident.status_history] == ["Open", "Investigating", "Resolved"]

    def test_resolution_note_recorded(self, incident, responder):
        incident.change_status("Investigating", responder)
        incident.change_status("Resolved", responder, "Replaced the roller")
        assert incident.resolution == "Replaced the roller"

    def test_same_status_is_noop(self, incident, responder):
        history = len(incident.status_history)
        activity = len(incident.activity)
        assert incident.change_status("Open", responder) is False
        assert len(incident.status_history) == history
        assert len(incident.activity) == activity

    def test_skip_raises(self, incident, responder):
        with pytest.raises(InvalidTransitionException):
            incident.change_status("Resolved", responder)
        assert incident.status == "Open"
        assert len(incident.status_history) == 1

    def test_resolved_is_terminal(self, incident, responder):
        incident.change_status("Investigating", responder)
        incident.change_status("Resolved", responder)
        with pytest.raises(InvalidTransitionException):
            incident.change_status("Open", responder)


class TestCommentsAndVisibility:
    def test_internal_comment_hidden_from_employee(self, incident, reporter, responder):
        incident.add_comment("We think it is the roller", responder, is_internal=True)
        incident.add_comment("Please wait", responder)

        employee_view = incident.visible_to(reporter)
        assert [c.text for c in employee_view.comments] == ["Please wait"]
        assert all(not a.is_internal for a in employee_view.activity)
        assert len(incident.comments) == 2

    def test_privileged_sees_everything(self, incident, responder):
        incident.add_comment("internal", responder, is_internal=True)
        assert incident.visible_to(responder) is incident

    def test_comment_activity_message(self, incident, principal):
        anonymous = principal(Role.RESPONDER, user_id="r-2", name="")
        incident.add_comment("hello", anonymous)
        assert incident.activity[-1].message == "Someone commented"
        assert incident.activity[-1].meta == {"text": "hello"}


class TestWatchAndAccess:
    def test_watch_is_idempotent(self, incident, responder):
        assert incident.watch(responder) is True
        assert incident.watch(responder) is False
        assert incident.watchers == [responder.user_id]
        assert sum(1 for a in incident.activity if a.type == "watch") == 1

    def test_read_access(self, incident, reporter, responder, principal):
        admin = principal(Role.ADMIN, user_id="adm-1")
        stranger = principal(Role.EMPLOYEE, user_id="emp-2")

        assert incident.can_read(reporter)
        assert incident.can_read(admin)
        assert not incident.can_read(stranger)
        assert not incident.can_read(responder)

        incident.assign(responder.user_id, responder.name, admin)
        assert incident.can_read(responder)
        assert incident.activity[-1].message == "Assigned to Riley"

    def test_privileged_can_contribute(self, incident, responder, principal):
        assert incident.can_contribute(responder)
        assert not incident.can_contribute(principal(Role.EMPLOYEE, user_id="emp-9"))
