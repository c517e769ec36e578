"""
Step Task Registry — maps step kinds and action types to their handlers.

Built once; the engine looks up a handler per step instead of comparing
type strings inline.
"""

from typing import Dict, Optional, Type

from core.constants import ActionType, StepKind
from tasks.base_task import BaseAction, BaseStepTask
from tasks.implementations.action_tasks import ACTION_TYPES, ActionTask
from tasks.implementations.condition_task import ConditionTask
from tasks.implementations.email_task import EMAIL_ACTION_TYPES
from tasks.implementations.trigger_task import TriggerTask
from tasks.implementations.wait_task import WaitTask


class StepTaskRegistry:
    """Central registry for step and action handlers."""

    def __init__(self):
        self._actions: Dict[str, BaseAction] = {}
        self._register_builtin_actions()
        self._default_action = self._actions[ActionType.GENERIC.value]
        self._tasks: Dict[StepKind, BaseStepTask] = {
            StepKind.TRIGGER: TriggerTask(),
            StepKind.CONDITION: ConditionTask(),
            StepKind.WAIT: WaitTask(),
            StepKind.ACTION: ActionTask(self._actions, self._default_action),
        }

    def _register_builtin_actions(self):
        for action_type, action_class in EMAIL_ACTION_TYPES.items():
            self.register_action(action_type, action_class)
        for action_type, action_class in ACTION_TYPES.items():
            self.register_action(action_type, action_class)

    def register_action(self, action_type: str, action_class: Type[BaseAction]):
        """Register (or replace) the handler for an action type."""
        self._actions[action_type] = action_class()

    def get_task(self, kind: StepKind) -> BaseStepTask:
        return self._tasks[kind]

    def get_action(self, action_type: Optional[str]) -> BaseAction:
        """Handler for an action type; unknown types get the generic action."""
        if not action_type:
            return self._default_action
        return self._actions.get(action_type, self._default_action)

    def list_all(self) -> list:
        return [
            {"action_type": action_type, "display_name": action.display_name}
            for action_type, action in self._actions.items()
        ]

    @property
    def available_actions(self) -> list:
        return list(self._actions.keys())


# Singleton
_registry: Optional[StepTaskRegistry] = None


def get_step_registry() -> StepTaskRegistry:
    """Get or create the singleton step task registry."""
    global _registry
    if _registry is None:
        _registry = StepTaskRegistry()
    return _registry
