"""Pipeline context, stages, runner and scheduler."""

from .context import PipelineContext, RunState, build_context
from .orchestrator import PipelineReport, PipelineRunner
from .scheduler import run_periodically
from .stages import StageResult, StageStatus, run_stage

__all__ = [
    "PipelineContext",
    "PipelineReport",
    "PipelineRunner",
    "RunState",
    "StageResult",
    "StageStatus",
    "build_context",
    "run_periodically",
    "run_stage",
]
