from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from caseintake.domain.constants import STEP_ORDER, StepStatus, WizardStep
from caseintake.domain.rules.step_rules import StepValidation, validate_step


@dataclass(frozen=True)
class WizardState:
    current: WizardStep = WizardStep.REGISTER
    completed: frozenset[WizardStep] = field(default_factory=frozenset)
    visited: frozenset[WizardStep] = field(default_factory=frozenset)
    last_validation: StepValidation | None = None


@dataclass(frozen=True)
class GoToStep:
    target: WizardStep
    snapshot: Mapping[str, Any]


@dataclass(frozen=True)
class GoNext:
    snapshot: Mapping[str, Any]


@dataclass(frozen=True)
class GoPrevious:
    snapshot: Mapping[str, Any]


@dataclass(frozen=True)
class ResetWizard:
    pass


WizardAction = GoToStep | GoNext | GoPrevious | ResetWizard


def _neighbour(step: WizardStep, offset: int) -> WizardStep:
    index = STEP_ORDER.index(step) + offset
    index = max(0, min(len(STEP_ORDER) - 1, index))
    return STEP_ORDER[index]


def _transition(state: WizardState, target: WizardStep, snapshot: Mapping[str, Any]) -> WizardState:
    result = validate_step(state.current, snapshot)
    if result.valid:
        completed = state.completed | {state.current}
        visited = state.visited - {state.current}
    else:
        completed = state.completed - {state.current}
        visited = state.visited | {state.current}
    return WizardState(current=target, completed=completed, visited=visited, last_validation=result)


def reduce_wizard(state: WizardState, action: WizardAction) -> WizardState:
    """Step navigation; validation marks the step left behind but never blocks."""
    if isinstance(action, ResetWizard):
        return WizardState()
    if isinstance(action, GoToStep):
        target = WizardStep(action.target)
        if target == state.current:
            return state
        return _transition(state, target, action.snapshot)
    if isinstance(action, GoNext):
        return _transition(state, _neighbour(state.current, 1), action.snapshot)
    if isinstance(action, GoPrevious):
        return _transition(state, _neighbour(state.current, -1), action.snapshot)
    raise ValueError(f"Unsupported wizard action: {action!r}")


def step_status(state: WizardState, step: WizardStep) -> StepStatus:
    if step == state.current:
        return StepStatus.ACTIVE
    if step in state.completed:
        return StepStatus.COMPLETED
    if step in state.visited:
        return StepStatus.VISITED
    return StepStatus.UNTOUCHED


def step_statuses(state: WizardState) -> dict[WizardStep, StepStatus]:
    return {step: step_status(state, step) for step in STEP_ORDER}


def is_last_step(state: WizardState) -> bool:
    return state.current == STEP_ORDER[-1]


def clear_validation(state: WizardState) -> WizardState:
    if state.last_validation is None:
        return state
    return replace(state, last_validation=None)
