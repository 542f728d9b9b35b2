import threading
from typing import Any, Dict, Optional, Tuple

from .action import Action, ActionType, action_key
from .config import get_env
from .errors import ActionNotFoundError, GaikitError
from .logger import logger


class Registry:
    """Holds every action (model, flow, prompt, tool, ...) of the process."""

    def __init__(self, env: Optional[str] = None):
        self.env = env or get_env()
        self.actions: Dict[str, Action] = {}
        self.values: Dict[Tuple[str, str], Any] = {}
        self._frozen = False
        self._lock = threading.Lock()

    def register_action(self, action: Action) -> Action:
        """Register a new action; keys are unique."""
        with self._lock:
            if self._frozen:
                raise GaikitError(f"cannot register {action.key}: registry is frozen")
            if action.key in self.actions:
                raise GaikitError(f"action {action.key} is already registered")
            self.actions[action.key] = action
        logger.debug(f"Registered action {action.key}")
        return action

    def lookup_action(self, key: str) -> Optional[Action]:
        with self._lock:
            return self.actions.get(key)

    def lookup(self, action_type: ActionType, name: str) -> Optional[Action]:
        return self.lookup_action(action_key(action_type, name))

    def get_action(self, key: str) -> Action:
        """Get an action by key"""
        action = self.lookup_action(key)
        if action is None:
            raise ActionNotFoundError(f"action {key} not found")
        return action

    def list_actions(self) -> Dict[str, Dict[str, Any]]:
        """Reflection descriptors of all actions, sorted by key"""
        with self._lock:
            actions = sorted(self.actions.values(), key=lambda a: a.key)
        return {a.key: a.desc() for a in actions}

    def register_value(self, kind: str, name: str, value: Any) -> None:
        """Register a non-action object (a flow, a prompt, ...) under kind/name."""
        with self._lock:
            if (kind, name) in self.values:
                raise GaikitError(f"{kind} {name!r} is already registered")
            self.values[(kind, name)] = value

    def lookup_value(self, kind: str, name: str) -> Any:
        with self._lock:
            return self.values.get((kind, name))

    def values_of(self, kind: str) -> Dict[str, Any]:
        with self._lock:
            return {n: v for (k, n), v in self.values.items() if k == kind}

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen


_registry = Registry()


def get_registry() -> Registry:
    return _registry
