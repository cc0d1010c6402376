"""
Stage state machine for a pipeline run.

Every status change of a Stage goes through the transition functions in this
module. They validate the change against ``ALLOWED_TRANSITIONS`` and perform
the automatic advance to the next stage on success, independent of any I/O.
"""

import logging
import uuid

from .models import PipelineRun, Stage, StageResult, StageStatus

logger = logging.getLogger(__name__)

# (stage id, display name, model label)
STAGE_DEFINITIONS: list[tuple[str, str, str]] = [
    ("repo-analysis", "Repository Analysis", "Mistral-7B"),
    ("issue-context", "Issue Context Extraction", "Llama-3-8B"),
    ("code-understanding", "Code Understanding", "CodeLlama-13B"),
    ("root-cause", "Root Cause Analysis", "CodeLlama-70B"),
    ("patch-generation", "Patch Generation", "CodeLlama-70B"),
    ("validation", "Patch Validation", "DeepseekCoder-33B"),
    ("integration", "PR Integration", "Llama-3-8B"),
]

STAGE_IDS = [stage_id for stage_id, _, _ in STAGE_DEFINITIONS]

# failed -> running is the in-place retry of a halted run
ALLOWED_TRANSITIONS: dict[StageStatus, set[StageStatus]] = {
    StageStatus.PENDING: {StageStatus.RUNNING},
    StageStatus.RUNNING: {StageStatus.SUCCEEDED, StageStatus.FAILED},
    StageStatus.SUCCEEDED: set(),
    StageStatus.FAILED: {StageStatus.RUNNING},
}


class InvalidTransitionError(ValueError):
    """Raised for a stage status change outside the transition table."""


def initial_stages() -> list[Stage]:
    return [
        Stage(id=stage_id, display_name=name, model=model)
        for stage_id, name, model in STAGE_DEFINITIONS
    ]


def new_run(run_id: str | None = None) -> PipelineRun:
    """Create an idle run with every stage pending."""
    return PipelineRun(run_id=run_id or str(uuid.uuid4()), stages=initial_stages())


def next_stage_id(run: PipelineRun, stage_id: str) -> str | None:
    """Return the id of the stage after ``stage_id``, or None for the last one."""
    ids = [stage.id for stage in run.stages]
    index = ids.index(stage_id)
    return ids[index + 1] if index + 1 < len(ids) else None


def _transition(stage: Stage, target: StageStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[stage.status]:
        raise InvalidTransitionError(
            f"Stage {stage.id} cannot go from {stage.status.value} to {target.value}"
        )
    logger.info(f"Stage {stage.id}: {stage.status.value} -> {target.value}")
    stage.status = target


def begin_stage(run: PipelineRun, stage_id: str) -> None:
    """Mark a stage running and make it the current stage."""
    running = [s.id for s in run.stages if s.status == StageStatus.RUNNING and s.id != stage_id]
    if running:
        raise InvalidTransitionError(f"Stage {running[0]} is already running")

    stage = run.stage(stage_id)
    _transition(stage, StageStatus.RUNNING)
    stage.error = None
    run.current_stage_id = stage_id


def start_run(run: PipelineRun) -> None:
    """Reset every stage to pending, drop patches and begin the first stage."""
    run.stages = initial_stages()
    run.patches = []
    run.current_stage_id = None
    begin_stage(run, run.stages[0].id)


def advance(run: PipelineRun, stage_id: str) -> str | None:
    """Begin the stage after a succeeded one.

    Returns:
        Id of the stage now running, or None when the run is complete
    """
    stage = run.stage(stage_id)
    if stage.status != StageStatus.SUCCEEDED:
        raise InvalidTransitionError(f"Cannot advance past {stage_id} in state {stage.status.value}")

    following = next_stage_id(run, stage_id)
    if following is None:
        logger.info(f"Run {run.run_id} completed")
        return None
    begin_stage(run, following)
    return following


def succeed_stage(run: PipelineRun, stage_id: str, result: StageResult) -> str | None:
    """Record a stage result and auto-advance.

    Returns:
        Id of the stage now running, or None when the run is complete
    """
    stage = run.stage(stage_id)
    _transition(stage, StageStatus.SUCCEEDED)
    stage.result = result
    return advance(run, stage_id)


def fail_stage(run: PipelineRun, stage_id: str, error: str) -> None:
    """Record a stage error. The run halts; nothing is started automatically."""
    stage = run.stage(stage_id)
    _transition(stage, StageStatus.FAILED)
    stage.error = error
    logger.warning(f"Run {run.run_id} halted at {stage_id}: {error}")


def retry_stage(run: PipelineRun) -> str:
    """Put the failed stage of a halted run back to running.

    Returns:
        Id of the retried stage
    """
    failed = [stage for stage in run.stages if stage.status == StageStatus.FAILED]
    if not failed:
        raise InvalidTransitionError(f"Run {run.run_id} has no failed stage to retry")
    begin_stage(run, failed[0].id)
    return failed[0].id


def reset_run(run: PipelineRun) -> None:
    """Return to idle, discarding all stage results, errors, patches and files."""
    run.stages = initial_stages()
    run.current_stage_id = None
    run.patches = []
    run.analyzed_files = {}
