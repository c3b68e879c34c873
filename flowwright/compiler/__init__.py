"""Backend compilers, the UI step executor and their artifact types."""

from flowwright.compiler.types import (
    BuildMode,
    BuildResult,
    CompiledAPIFlow,
    CompiledUIFlow,
    ExecutionResult,
    StepResult,
    UIOperation,
    UIStep,
    VerifyResult,
)
from flowwright.compiler.api_compiler import APICompiler, check_api_capabilities
from flowwright.compiler.ui_compiler import UICompiler
from flowwright.compiler.executor import UIExecutor

__all__ = [
    "APICompiler",
    "BuildMode",
    "BuildResult",
    "CompiledAPIFlow",
    "CompiledUIFlow",
    "ExecutionResult",
    "StepResult",
    "UICompiler",
    "UIExecutor",
    "UIOperation",
    "UIStep",
    "VerifyResult",
    "check_api_capabilities",
]
