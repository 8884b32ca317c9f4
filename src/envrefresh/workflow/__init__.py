"""Refresh workflow: parameters, steps and the sequencer."""

from envrefresh.workflow.detection import ParameterDetector, ParameterResolver
from envrefresh.workflow.handlers import register_default_handlers
from envrefresh.workflow.params import ParameterInput, RefreshParameters, merge_parameters
from envrefresh.workflow.registry import Collaborators, StepContext, StepHandler, StepRegistry
from envrefresh.workflow.sequencer import Sequencer
from envrefresh.workflow.steps import (
    DEFAULT_STEPS,
    StepDefinition,
    StepOutcome,
    StepResult,
    WorkflowRun,
    default_steps,
    load_workflow,
)

__all__ = [
    "DEFAULT_STEPS",
    "Collaborators",
    "ParameterDetector",
    "ParameterInput",
    "ParameterResolver",
    "RefreshParameters",
    "Sequencer",
    "StepContext",
    "StepDefinition",
    "StepHandler",
    "StepOutcome",
    "StepRegistry",
    "StepResult",
    "WorkflowRun",
    "default_steps",
    "load_workflow",
    "merge_parameters",
    "register_default_handlers",
]
