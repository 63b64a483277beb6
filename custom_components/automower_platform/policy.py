"""Policies which derive presentation state from the mower state."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.util import dt as dt_util

from .models import (
    Activity,
    MowerStates,
    OverrideActions,
    RestrictedReasons,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from .models import Calendar, MowerState, MowerStatus, Planner


class InvalidStateError(Exception):
    """Raised when an operation is invoked before its inputs have been provided."""


class DeterministicScheduleEnabledPolicy:
    """Decides whether the mower schedule should be reported as enabled.

    The calendar and planner must both be set before the policy can be applied.
    The values set are retained across calls until replaced.
    """

    def __init__(self, now: Callable[[], datetime] = dt_util.now) -> None:
        """Initialize the policy.

        Args:
            now: Clock returning the current local time.

        """
        self._now = now
        self._calendar: Calendar | None = None
        self._planner: Planner | None = None
        self._mower_state: MowerState | None = None

    def set_calendar(self, calendar: Calendar | None) -> None:
        """Set the calendar of the mower."""
        self._calendar = calendar

    def set_planner(self, planner: Planner | None) -> None:
        """Set the planner of the mower."""
        self._planner = planner

    def set_mower_state(self, mower_state: MowerState | None) -> None:
        """Set the state reported by the mower."""
        self._mower_state = mower_state

    def should_apply(self) -> bool:
        """Return True if the policy has what it needs and the result is meaningful.

        While the mower is in operation the schedule is obviously enabled, so
        the current value is left untouched.
        """
        if self._calendar is None or self._planner is None:
            return False

        if (
            self._mower_state is not None
            and self._mower_state.state == MowerStates.IN_OPERATION
        ):
            return False

        return True

    def apply(self) -> bool:
        """Return True if the schedule is enabled.

        Raises:
            InvalidStateError: If the calendar or planner has not been set.

        """
        if self._calendar is None:
            error_msg = "The calendar has not been set"
            raise InvalidStateError(error_msg)

        if self._planner is None:
            error_msg = "The planner has not been set"
            raise InvalidStateError(error_msg)

        if self._planner.override.action == OverrideActions.FORCE_PARK:
            return False

        if self._planner.restricted_reason == RestrictedReasons.PARK_OVERRIDE:
            return False

        if self._planner.restricted_reason == RestrictedReasons.WEEK_SCHEDULE:
            # Restricted by the schedule itself; enabled if it will start again
            return self._planner.next_start_timestamp > 0

        return self._is_any_task_active()

    def _is_any_task_active(self) -> bool:
        now = self._now()
        return any(task.is_active_at(now) for task in self._calendar.tasks)


class _ActivityPolicy:
    """Checks whether the mower is performing a specific activity."""

    activity: Activity

    def __init__(self) -> None:
        self._mower_status: MowerStatus | None = None

    def set_mower_status(self, mower_status: MowerStatus | None) -> None:
        """Set the vendor neutral status of the mower."""
        self._mower_status = mower_status

    def check(self) -> bool:
        """Return True while the mower performs the activity."""
        if self._mower_status is None:
            return False
        return self._mower_status.activity == self.activity


class MowerIsLeavingPolicy(_ActivityPolicy):
    """True while the mower is leaving the charging station."""

    activity = Activity.LEAVING_HOME


class MowerIsArrivingPolicy(_ActivityPolicy):
    """True while the mower is heading back to the charging station."""

    activity = Activity.GOING_HOME
