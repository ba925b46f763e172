"""Client view state machine."""

from collections.abc import Callable
from enum import StrEnum

import structlog

logger = structlog.get_logger()


class View(StrEnum):
    AUTH = "auth"
    ONBOARDING = "onboarding"
    DASHBOARD = "dashboard"
    LESSON = "lesson"
    PROGRESS = "progress"


class ViewEvent(StrEnum):
    """Completion callbacks that are allowed to move between views."""

    AUTH_SUCCESS = "auth_success"
    SESSION_RESTORED = "session_restored"
    ONBOARDING_COMPLETE = "onboarding_complete"
    START_LESSON = "start_lesson"
    LESSON_COMPLETE = "lesson_complete"
    VIEW_PROGRESS = "view_progress"
    BACK = "back"
    LOGOUT = "logout"


TRANSITIONS: dict[tuple[View, ViewEvent], View] = {
    (View.AUTH, ViewEvent.AUTH_SUCCESS): View.ONBOARDING,
    (View.AUTH, ViewEvent.SESSION_RESTORED): View.DASHBOARD,
    (View.ONBOARDING, ViewEvent.ONBOARDING_COMPLETE): View.DASHBOARD,
    (View.DASHBOARD, ViewEvent.START_LESSON): View.LESSON,
    (View.DASHBOARD, ViewEvent.VIEW_PROGRESS): View.PROGRESS,
    (View.LESSON, ViewEvent.LESSON_COMPLETE): View.DASHBOARD,
    (View.LESSON, ViewEvent.BACK): View.DASHBOARD,
    (View.PROGRESS, ViewEvent.BACK): View.DASHBOARD,
}

# Logging out is possible from every signed-in view.
for _view in (View.ONBOARDING, View.DASHBOARD, View.LESSON, View.PROGRESS):
    TRANSITIONS[(_view, ViewEvent.LOGOUT)] = View.AUTH


class ViewDispatcher:
    """Single owner of the current view.

    Views never set the current view themselves; they report a completion
    event and the dispatcher applies the matching transition.
    """

    def __init__(self, initial: View = View.AUTH) -> None:
        self._current = initial
        self._listeners: list[Callable[[View, View], None]] = []

    @property
    def current(self) -> View:
        return self._current

    def on_change(self, listener: Callable[[View, View], None]) -> None:
        """Register ``listener(old_view, new_view)``."""
        self._listeners.append(listener)

    def dispatch(self, event: ViewEvent | str) -> View:
        event = ViewEvent(event)
        target = TRANSITIONS.get((self._current, event))
        if target is None:
            raise ValueError(f"No transition from {self._current} on {event}")
        old = self._current
        logger.debug(
            "view_changed", old_view=old.value, new_view=target.value, trigger=event.value
        )
        self._current = target
        for listener in self._listeners:
            listener(old, target)
        return target
