"""Constants and enums for the lead automation engine."""

from enum import Enum

# HTTP headers
ACTOR_ID_HEADER = "X-Actor-Id"
REQUEST_ID_HEADER = "X-Request-ID"


class StepKind(str, Enum):
    """Kind of a workflow step."""

    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    WAIT = "wait"


class StepVerdict(str, Enum):
    """Outcome of executing one step for one lead."""

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


class RunStatus(str, Enum):
    """Overall outcome of a workflow run for one lead."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkflowStatus(str, Enum):
    """Workflow lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"


class TriggerType(str, Enum):
    """Trigger kinds a workflow can declare."""

    LEAD_CREATED = "lead_created"
    SCORE_CHANGE = "score_change"
    STATUS_CHANGE = "status_change"
    TIME_ELAPSED = "time_elapsed"
    TAG_ADDED = "tag_added"


class ActionType(str, Enum):
    """Action kinds an action step can perform."""

    SEND_EMAIL = "send_email"
    UPDATE_STATUS = "update_status"
    ADD_TAG = "add_tag"
    ASSIGN_USER = "assign_user"
    CREATE_ALERT = "create_alert"
    GENERIC = "generic"


class ConditionOperator(str, Enum):
    """Comparison operators for condition steps."""

    GT = "gt"
    LT = "lt"
    EQ = "eq"


class SendTiming(str, Enum):
    """Symbolic send-time preferences."""

    IMMEDIATE = "immediate"
    OPTIMAL = "optimal"
    MORNING = "morning"
    AFTERNOON = "afternoon"


class FallbackAction(str, Enum):
    """What to do when an email step's send or schedule fails."""

    CREATE_TASK = "create_task"
    CREATE_ALERT = "create_alert"
    RETRY = "retry"
    SKIP = "skip"


class AuditAction(str, Enum):
    """Audit log action names written by the engine."""

    AUTOMATION_EXECUTED = "AUTOMATION_EXECUTED"
    AUTOMATION_ALERT = "AUTOMATION_ALERT"
    AUTOMATION_FALLBACK_ALERT = "AUTOMATION_FALLBACK_ALERT"


class ScheduledMessageStatus(str, Enum):
    """Status of a deferred message."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


CUSTOM_TEMPLATE_ID = "__custom__"
