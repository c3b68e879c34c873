from flowwright.core.builder import FlowBuilder
from flowwright.core.errors import (
    CapabilityError,
    FlowwrightError,
    RemoteError,
    ResolutionError,
    StructuralError,
)
from flowwright.core.types import Action, ActionType, Flow, FlowSettings, Trigger
from flowwright.core.validator import ValidationResult, validate, validate_definition
from flowwright.compiler.types import BuildMode, BuildResult

__all__ = [
    "FlowBuilder",
    "Action",
    "ActionType",
    "BuildMode",
    "BuildResult",
    "CapabilityError",
    "Flow",
    "FlowSettings",
    "FlowwrightError",
    "RemoteError",
    "ResolutionError",
    "StructuralError",
    "Trigger",
    "ValidationResult",
    "validate",
    "validate_definition",
]
