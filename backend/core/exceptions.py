"""Domain exceptions.

Each carries the HTTP status the API answers with; inside the engine they
are caught and turned into failed step results instead.
"""


class AutomationException(Exception):
    """Base exception for the lead automation engine."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ActorRequiredError(AutomationException):
    """The request did not say who is acting."""

    status_code = 401

    def __init__(self, message: str = "Missing X-Actor-Id header"):
        super().__init__(message)


class NotFoundError(AutomationException):
    """Workflow, lead or template missing, or owned by someone else."""

    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ValidationError(AutomationException):
    status_code = 422

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message)


class WorkflowDefinitionError(ValidationError):
    """A stored workflow or step definition could not be decoded."""

    def __init__(self, message: str = "Invalid workflow definition"):
        super().__init__(message)


class CollaboratorError(AutomationException):
    """Storage, transport or content generation backend failed."""

    status_code = 502

    def __init__(self, message: str = "Collaborator call failed"):
        super().__init__(message)
