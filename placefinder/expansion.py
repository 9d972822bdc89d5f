"""Search-radius expansion state machine.

The controller is the single source of truth for discovery progress: every
transition produces a new immutable ExpansionState that is published to an
optional listener (a UI, the CLI state logger) and can be serialized as-is.

    initial -> searching -> expanding-distance (x0..3) -> complete
                                                       \\-> limit-reached
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class ExpansionStatus(str, Enum):
    INITIAL = "initial"
    SEARCHING = "searching"
    EXPANDING_DISTANCE = "expanding-distance"
    COMPLETE = "complete"
    LIMIT_REACHED = "limit-reached"


TERMINAL_STATUSES = frozenset({ExpansionStatus.COMPLETE, ExpansionStatus.LIMIT_REACHED})


@dataclass(frozen=True)
class ExpansionState:
    status: ExpansionStatus
    current_radius_m: int
    initial_radius_m: int
    expansion_count: int = 0
    radius_history: Tuple[int, ...] = ()
    result_count: int = 0
    min_results: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "currentRadius": self.current_radius_m,
            "initialRadius": self.initial_radius_m,
            "expansionCount": self.expansion_count,
            "radiusHistory": list(self.radius_history),
            "resultCount": self.result_count,
            "minResults": self.min_results,
        }


StateListener = Callable[[ExpansionState], None]


class ExpansionController:
    def __init__(
        self,
        initial_radius_m: int,
        min_results: int,
        step_m: int = 500,
        max_expansions: int = 3,
        on_change: Optional[StateListener] = None,
    ) -> None:
        if initial_radius_m <= 0:
            raise ValueError("initial_radius_m must be positive")
        if step_m <= 0:
            raise ValueError("step_m must be positive")
        if max_expansions < 0:
            raise ValueError("max_expansions must be >= 0")
        self.initial_radius_m = int(initial_radius_m)
        self.min_results = int(min_results)
        self.step_m = int(step_m)
        self.max_expansions = int(max_expansions)
        self.on_change = on_change
        self._state = self._initial_state()

    def _initial_state(self) -> ExpansionState:
        return ExpansionState(
            status=ExpansionStatus.INITIAL,
            current_radius_m=self.initial_radius_m,
            initial_radius_m=self.initial_radius_m,
            min_results=self.min_results,
        )

    @property
    def state(self) -> ExpansionState:
        return self._state

    @property
    def radius_m(self) -> int:
        return self._state.current_radius_m

    @property
    def expansion_count(self) -> int:
        return self._state.expansion_count

    @property
    def is_terminal(self) -> bool:
        return self._state.is_terminal

    def _transition(self, state: ExpansionState) -> ExpansionState:
        self._state = state
        logger.debug(
            "Expansion state %s radius=%sm expansions=%s results=%s",
            state.status.value,
            state.current_radius_m,
            state.expansion_count,
            state.result_count,
        )
        if self.on_change is not None:
            try:
                self.on_change(state)
            except Exception:
                logger.exception("Expansion state listener failed")
        return state

    def start(self) -> ExpansionState:
        if self._state.status is not ExpansionStatus.INITIAL:
            raise RuntimeError(f"Cannot start from state {self._state.status.value}")
        return self._transition(
            ExpansionState(
                status=ExpansionStatus.SEARCHING,
                current_radius_m=self.initial_radius_m,
                initial_radius_m=self.initial_radius_m,
                radius_history=(self.initial_radius_m,),
                min_results=self.min_results,
            )
        )

    def record(self, result_count: int) -> ExpansionState:
        """Report how many usable results the current radius produced."""
        current = self._state
        if current.status not in (ExpansionStatus.SEARCHING, ExpansionStatus.EXPANDING_DISTANCE):
            raise RuntimeError(f"Cannot record results in state {current.status.value}")

        if result_count >= self.min_results:
            return self._transition(
                ExpansionState(
                    status=ExpansionStatus.COMPLETE,
                    current_radius_m=current.current_radius_m,
                    initial_radius_m=self.initial_radius_m,
                    expansion_count=current.expansion_count,
                    radius_history=current.radius_history,
                    result_count=result_count,
                    min_results=self.min_results,
                )
            )

        if current.expansion_count >= self.max_expansions:
            logger.info(
                "Expansion limit reached after %s expansions (%s/%s results at %sm)",
                current.expansion_count,
                result_count,
                self.min_results,
                current.current_radius_m,
            )
            return self._transition(
                ExpansionState(
                    status=ExpansionStatus.LIMIT_REACHED,
                    current_radius_m=current.current_radius_m,
                    initial_radius_m=self.initial_radius_m,
                    expansion_count=current.expansion_count,
                    radius_history=current.radius_history,
                    result_count=result_count,
                    min_results=self.min_results,
                )
            )

        next_radius = current.current_radius_m + self.step_m
        logger.info(
            "Only %s/%s results at %sm, expanding search radius to %sm",
            result_count,
            self.min_results,
            current.current_radius_m,
            next_radius,
        )
        return self._transition(
            ExpansionState(
                status=ExpansionStatus.EXPANDING_DISTANCE,
                current_radius_m=next_radius,
                initial_radius_m=self.initial_radius_m,
                expansion_count=current.expansion_count + 1,
                radius_history=current.radius_history + (next_radius,),
                result_count=result_count,
                min_results=self.min_results,
            )
        )

    def restart(self) -> ExpansionState:
        return self._transition(self._initial_state())
