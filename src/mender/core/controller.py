"""
Pipeline controller.

Owns one PipelineRun and sequences its stages through the resolution graph.
All mutation of the run happens under the controller's lock and goes through
the transition functions of the state machine. Observers either poll
``snapshot()`` or ``subscribe()`` to be called after every change.

``reset()`` bumps a generation counter; stage outcomes reported by a graph
execution started under an older generation are discarded.
"""

import copy
import logging
import threading
from collections.abc import Callable

from .graph import GraphState, ResolutionGraph
from .models import Issue, Patch, PipelineRun, Repository, RunStatus, StageResult
from .repo_client import RepoClient
from .state_machine import (
    InvalidTransitionError,
    fail_stage as mark_stage_failed,
    new_run,
    reset_run,
    retry_stage,
    start_run,
    succeed_stage,
)

logger = logging.getLogger(__name__)

Subscriber = Callable[[PipelineRun], None]


class PipelineController:
    """Runs the fixed stage sequence for one pipeline run."""

    def __init__(self, repo_client: RepoClient, run_id: str | None = None):
        """Initialize the controller.

        Args:
            repo_client: Repository data provider used by the stages
            run_id: Identifier of the run, generated when omitted
        """
        self.repo_client = repo_client
        self.run = new_run(run_id)
        self.graph = ResolutionGraph(repo_client, self)
        self._lock = threading.RLock()
        self._generation = 0
        self._state: GraphState | None = None
        self._subscribers: list[Subscriber] = []

    @property
    def run_id(self) -> str:
        return self.run.run_id

    @property
    def patches(self) -> list[Patch]:
        with self._lock:
            return copy.deepcopy(self.run.patches)

    def snapshot(self) -> PipelineRun:
        """Return an independent copy of the run."""
        with self._lock:
            return copy.deepcopy(self.run)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback invoked with a snapshot after every change.

        Returns:
            Function removing the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = copy.deepcopy(self.run)
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.warning(f"Run subscriber failed: {e}")

    # Run lifecycle

    def start(self, repository: Repository, issue: Issue) -> None:
        """Begin a run: every stage pending, the first one running.

        Raises:
            InvalidTransitionError: If the run is already running
        """
        with self._lock:
            if self.run.status == RunStatus.RUNNING:
                raise InvalidTransitionError(f"Run {self.run_id} is already running")
            start_run(self.run)
            self.run.repository = repository
            self.run.issue = issue
            self.run.analyzed_files = {}
            self._generation += 1
            self._state = GraphState(
                repository=repository,
                issue=issue,
                generation=self._generation,
                error="",
            )
            logger.info(f"Run {self.run_id} started for {repository.full_name}#{issue.number}")
            self._notify()

    def begin_retry(self) -> str:
        """Put the failed stage of a halted run back to running.

        Returns:
            Id of the retried stage

        Raises:
            InvalidTransitionError: If the run has no failed stage
        """
        with self._lock:
            if self._state is None:
                raise InvalidTransitionError(f"Run {self.run_id} has not been started")
            stage_id = retry_stage(self.run)
            if stage_id == "patch-generation":
                self.run.patches = []
            self._generation += 1
            self._state = GraphState(**{**self._state, "error": "", "generation": self._generation})
            logger.info(f"Retrying stage {stage_id} of run {self.run_id}")
            self._notify()
            return stage_id

    def resume(self) -> PipelineRun:
        """Execute the graph from the currently running stage to the end.

        Returns:
            Snapshot of the run once the graph stops
        """
        with self._lock:
            if self.run.status != RunStatus.RUNNING or self._state is None:
                logger.info(f"Run {self.run_id} has nothing to execute")
                return copy.deepcopy(self.run)
            generation = self._generation
            state = GraphState(**{**self._state, "start_stage": self.run.current_stage_id})

        final_state = self.graph.execute(state)

        with self._lock:
            if generation == self._generation:
                self._state = final_state
            return copy.deepcopy(self.run)

    def execute(self, repository: Repository, issue: Issue) -> PipelineRun:
        """Run every stage for an issue and return the final snapshot."""
        self.start(repository, issue)
        return self.resume()

    def retry(self) -> PipelineRun:
        """Resume a halted run at its failed stage."""
        self.begin_retry()
        return self.resume()

    def reset(self) -> None:
        """Return to idle, discarding results, patches and in-flight work."""
        with self._lock:
            self._generation += 1
            self._state = None
            reset_run(self.run)
            logger.info(f"Run {self.run_id} reset")
            self._notify()

    # Stage outcomes reported by the graph

    def is_stale(self, generation: int) -> bool:
        with self._lock:
            return generation != self._generation

    def complete_stage(self, generation: int, stage_id: str, result: StageResult) -> None:
        with self._lock:
            if generation != self._generation:
                logger.info(f"Discarding stale result of stage {stage_id}")
                return
            succeed_stage(self.run, stage_id, result)
            self._notify()

    def fail_stage(self, generation: int, stage_id: str, error: str) -> None:
        with self._lock:
            if generation != self._generation:
                logger.info(f"Discarding stale failure of stage {stage_id}")
                return
            mark_stage_failed(self.run, stage_id, error)
            self._notify()

    def record_files(self, generation: int, files: dict[str, str]) -> None:
        with self._lock:
            if generation == self._generation:
                self.run.add_analyzed_files(files)

    def record_patch(self, generation: int, patch: Patch) -> None:
        with self._lock:
            if generation == self._generation:
                self.run.patches.append(patch)
                self._notify()
