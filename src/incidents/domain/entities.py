"""
Incidents Domain Entities
=========================

The incident aggregate and its status workflow.

Child records (history, comments, attachments, activity) carry snapshots
of the acting user's name so they stay accurate after a rename.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.config import (
    ActivityType,
    IncidentStatus,
    INCIDENT_CATEGORIES,
    SEVERITY_LEVELS,
    VALID_STATUSES,
)
from src.core import InvalidTransitionException, ValidationException
from src.identity.domain import Principal


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowPolicy:
    """
    Status workflow: Open -> Investigating -> Resolved.

    Resolved is terminal. Staying in the same status is always allowed
    and is a no-op.
    """

    TRANSITIONS: Dict[str, List[str]] = {
        IncidentStatus.OPEN: [IncidentStatus.INVESTIGATING],
        IncidentStatus.INVESTIGATING: [IncidentStatus.RESOLVED],
        IncidentStatus.RESOLVED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        if from_status == to_status:
            return True
        return to_status in cls.TRANSITIONS.get(from_status, [])

    @classmethod
    def validate(cls, from_status: str, to_status: str) -> None:
        if to_status not in VALID_STATUSES:
            raise ValidationException(f"Invalid status: {to_status}")
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionException(from_status, to_status)


@dataclass
class StatusChange:
    from_status: Optional[str]
    to_status: str
    changed_by: Optional[str]
    changed_by_name: Optional[str]
    changed_at: datetime
    note: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Comment:
    text: str
    author_id: Optional[str]
    author_name: Optional[str]
    created_at: datetime
    is_internal: bool = False
    id: Optional[int] = None


@dataclass
class Attachment:
    url: str
    filename: str
    uploaded_by: Optional[str]
    uploaded_at: datetime
    id: Optional[int] = None


@dataclass
class ActivityEntry:
    type: str
    message: str
    created_at: datetime
    by: Optional[str] = None
    by_name: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None

    @property
    def is_internal(self) -> bool:
        return bool(self.meta.get("internal"))


@dataclass
class AITriage:
    """AI annotations recorded at creation time."""
    predicted_category: Optional[str] = None
    predicted_severity: Optional[str] = None
    category_confidence: Optional[float] = None
    severity_confidence: Optional[float] = None
    triage_confidence: Optional[float] = None
    assigned_team: Optional[str] = None
    ai_powered: bool = False
    triaged_at: Optional[datetime] = None


@dataclass
class Incident:
    """
    Incident aggregate root.

    Invariants:
        - status_history is never empty; its last entry's to_status is status
        - the first history entry has from_status None
        - watchers hold each user at most once
    """
    id: str
    title: str
    description: str
    category: str
    severity: str
    reported_by: str
    created_at: datetime
    status: str = IncidentStatus.OPEN
    reporter_name: Optional[str] = None
    assigned_to: Optional[str] = None
    assignee_name: Optional[str] = None
    assigned_team: Optional[str] = None
    resolution: Optional[str] = None
    updated_at: Optional[datetime] = None
    status_history: List[StatusChange] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    activity: List[ActivityEntry] = field(default_factory=list)
    watchers: List[str] = field(default_factory=list)
    embedding: Optional[List[float]] = None
    ai_triage: Optional[AITriage] = None
    suggested_solutions: List[Dict[str, Any]] = field(default_factory=list)
    anomaly_score: float = 0.0
    anomaly_flags: List[str] = field(default_factory=list)
    is_anomalous: bool = False

    def __post_init__(self):
        if self.category not in INCIDENT_CATEGORIES:
            raise ValidationException(f"Invalid category: {self.category}")
        if self.severity not in SEVERITY_LEVELS:
            raise ValidationException(f"Invalid severity: {self.severity}")
        if self.status not in VALID_STATUSES:
            raise ValidationException(f"Invalid status: {self.status}")

    @classmethod
    def open(
        cls,
        incident_id: str,
        title: str,
        description: str,
        category: str,
        severity: str,
        reporter: Principal
    ) -> "Incident":
        """Create a new Open incident with its initial history and activity."""
        now = _now()
        incident = cls(
            id=incident_id,
            title=title,
            description=description,
            category=category,
            severity=severity,
            reported_by=reporter.user_id,
            reporter_name=reporter.name,
            created_at=now,
            updated_at=now
        )
        incident.status_history.append(StatusChange(
            from_status=None,
            to_status=IncidentStatus.OPEN,
            changed_by=reporter.user_id,
            changed_by_name=reporter.name,
            changed_at=now,
            note="Created"
        ))
        incident._log(ActivityType.CREATED, "Incident created", reporter, at=now)
        return incident

    # ---------- access ----------

    def can_read(self, principal: Principal) -> bool:
        return (
            principal.is_admin
            or principal.user_id == self.reported_by
            or principal.user_id == self.assigned_to
        )

    def can_contribute(self, principal: Principal) -> bool:
        """Comment, attach or watch."""
        return principal.is_privileged or self.can_read(principal)

    def visible_to(self, principal: Principal) -> "Incident":
        """Copy with internal comments and their activity removed for employees."""
        if principal.is_privileged:
            return self
        return replace(
            self,
            comments=[c for c in self.comments if not c.is_internal],
            activity=[a for a in self.activity if not a.is_internal]
        )

    # ---------- mutations ----------

    def _touch(self) -> datetime:
        self.updated_at = _now()
        return self.updated_at

    def _log(
        self,
        activity_type: str,
        message: str,
        actor: Principal,
        at: Optional[datetime] = None,
        **meta
    ) -> ActivityEntry:
        entry = ActivityEntry(
            type=activity_type,
            message=message,
            created_at=at or _now(),
            by=actor.user_id,
            by_name=actor.name,
            meta=meta
        )
        self.activity.append(entry)
        return entry

    def change_status(self, new_status: str, actor: Principal, note: Optional[str] = None) -> bool:
        """
        Move to `new_status`.

        Returns:
            False for a same-status no-op, True when a transition was recorded

        Raises:
            InvalidTransitionException: Transition not in the workflow
        """
        WorkflowPolicy.validate(self.status, new_status)
        if new_status == self.status:
            return False

        now = self._touch()
        self.status_history.append(StatusChange(
            from_status=self.status,
            to_status=new_status,
            changed_by=actor.user_id,
            changed_by_name=actor.name,
            changed_at=now,
            note=note
        ))
        self.status = new_status
        if new_status == IncidentStatus.RESOLVED and note:
            self.resolution = note

        self._log(ActivityType.STATUS, f"Status changed to {new_status}", actor, at=now, status=new_status)
        return True

    def add_comment(self, text: str, author: Principal, is_internal: bool = False) -> Comment:
        now = self._touch()
        comment = Comment(
            text=text,
            author_id=author.user_id,
            author_name=author.name,
            created_at=now,
            is_internal=is_internal
        )
        self.comments.append(comment)

        meta = {"text": text}
        if is_internal:
            meta["internal"] = True
        self._log(ActivityType.COMMENT, f"{author.name or 'Someone'} commented", author, at=now, **meta)
        return comment

    def add_attachment(self, url: str, filename: str, uploader: Principal) -> Attachment:
        now = self._touch()
        attachment = Attachment(
            url=url,
            filename=filename,
            uploaded_by=uploader.user_id,
            uploaded_at=now
        )
        self.attachments.append(attachment)
        self._log(
            ActivityType.ATTACHMENT,
            f"Attachment uploaded: {filename}",
            uploader,
            at=now,
            filename=filename,
            url=url
        )
        return attachment

    def watch(self, user: Principal) -> bool:
        """Add a watcher. Returns False if already watching."""
        if user.user_id in self.watchers:
            return False
        now = self._touch()
        self.watchers.append(user.user_id)
        self._log(ActivityType.WATCH, f"{user.name} is watching", user, at=now)
        return True

    def assign(self, assignee_id: str, assignee_name: Optional[str], actor: Principal) -> None:
        now = self._touch()
        self.assigned_to = assignee_id
        self.assignee_name = assignee_name
        self._log(
            ActivityType.ASSIGN,
            f"Assigned to {assignee_name}",
            actor,
            at=now,
            assignedTo=assignee_id
        )

    def route(self, team: Optional[str], assignee_id: Optional[str] = None, assignee_name: Optional[str] = None) -> None:
        """Apply a routing decision at creation time."""
        self.assigned_team = team
        if assignee_id:
            self.assigned_to = assignee_id
            self.assignee_name = assignee_name
