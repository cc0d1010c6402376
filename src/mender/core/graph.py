"""LangGraph workflow for the Mender pipeline."""

import logging
from collections.abc import Callable
from typing import Any, NotRequired, Protocol, TypedDict

from langgraph.graph import END, START, StateGraph

from ..agents.code_understanding import CodeUnderstandingAgent
from ..agents.integration import IntegrationAgent
from ..agents.issue_context import IssueContextAgent
from ..agents.patch_generation import PatchGenerationAgent
from ..agents.repo_analysis import RepoAnalysisAgent
from ..agents.root_cause import RootCauseAgent
from ..agents.validation import ValidationAgent
from .models import (
    CandidateUnit,
    Diagnosis,
    Issue,
    Match,
    Patch,
    Repository,
    StageResult,
)
from .repo_client import RepoClient
from .state_machine import STAGE_DEFINITIONS, STAGE_IDS

logger = logging.getLogger(__name__)

DISPLAY_NAMES = {stage_id: name for stage_id, name, _ in STAGE_DEFINITIONS}


class GraphState(TypedDict):
    """State for the LangGraph workflow."""

    repository: Repository
    issue: Issue
    generation: int
    error: str
    files: NotRequired[dict[str, str]]
    signals: NotRequired[set[str]]
    matches: NotRequired[list[Match]]
    candidate: NotRequired[CandidateUnit | None]
    diagnosis: NotRequired[Diagnosis | None]
    patches: NotRequired[list[Patch]]
    start_stage: NotRequired[str]


class StageTracker(Protocol):
    """Receives stage outcomes while the graph runs."""

    def is_stale(self, generation: int) -> bool: ...

    def complete_stage(self, generation: int, stage_id: str, result: StageResult) -> None: ...

    def fail_stage(self, generation: int, stage_id: str, error: str) -> None: ...

    def record_files(self, generation: int, files: dict[str, str]) -> None: ...

    def record_patch(self, generation: int, patch: Patch) -> None: ...


StageWork = Callable[[GraphState], tuple[dict[str, Any], StageResult]]


class ResolutionGraph:
    """LangGraph workflow running the seven pipeline stages in order."""

    def __init__(self, repo_client: RepoClient, tracker: StageTracker):
        """Initialize the resolution graph.

        Args:
            repo_client: Repository data provider
            tracker: Receiver of stage outcomes, normally the pipeline controller
        """
        self.repo_client = repo_client
        self.tracker = tracker
        self.graph = self._build_graph()

    def _build_graph(self) -> Any:
        """Build the LangGraph workflow."""
        workflow = StateGraph(GraphState)

        work: dict[str, StageWork] = {
            "repo-analysis": self._repo_analysis,
            "issue-context": self._issue_context,
            "code-understanding": self._code_understanding,
            "root-cause": self._root_cause,
            "patch-generation": self._patch_generation,
            "validation": self._validation,
            "integration": self._integration,
        }
        for stage_id in STAGE_IDS:
            workflow.add_node(stage_id, self._stage_node(stage_id, work[stage_id]))

        # Entry is routed so that a retry resumes at the failed stage
        workflow.add_conditional_edges(
            START,
            lambda state: state.get("start_stage") or STAGE_IDS[0],
            {stage_id: stage_id for stage_id in STAGE_IDS},
        )
        for stage_id, following in zip(STAGE_IDS, STAGE_IDS[1:]):
            workflow.add_conditional_edges(
                stage_id,
                self._continue_or_end,
                {"continue": following, "end": END},
            )
        workflow.add_edge(STAGE_IDS[-1], END)

        return workflow.compile()

    def _continue_or_end(self, state: GraphState) -> str:
        if state.get("error") or self.tracker.is_stale(state["generation"]):
            return "end"
        return "continue"

    def _stage_node(self, stage_id: str, work: StageWork) -> Callable[[GraphState], dict[str, Any]]:
        display_name = DISPLAY_NAMES[stage_id]

        def node(state: GraphState) -> dict[str, Any]:
            generation = state["generation"]
            if state.get("error") or self.tracker.is_stale(generation):
                return {}
            try:
                update, result = work(state)
            except Exception as e:
                error = f"{display_name} failed: {str(e)}"
                logger.error(error)
                self.tracker.fail_stage(generation, stage_id, error)
                return {"error": error}
            self.tracker.complete_stage(generation, stage_id, result)
            return update

        return node

    def _repo_analysis(self, state: GraphState) -> tuple[dict[str, Any], StageResult]:
        output = RepoAnalysisAgent(self.repo_client).execute(state["repository"])
        self.tracker.record_files(state["generation"], output.files)
        return {"files": output.files}, output.result

    def _issue_context(self, state: GraphState) -> tuple[dict[str, Any], StageResult]:
        output = IssueContextAgent().execute(state["issue"])
        return {"signals": output.signals}, output.result

    def _code_understanding(self, state: GraphState) -> tuple[dict[str, Any], StageResult]:
        files = state.get("files") or {}
        output = CodeUnderstandingAgent(self.repo_client).execute(
            state["repository"], files, state.get("signals") or set()
        )
        update: dict[str, Any] = {"matches": output.matches, "candidate": output.candidate}
        if output.discovered_files:
            self.tracker.record_files(state["generation"], output.discovered_files)
            update["files"] = {**files, **output.discovered_files}
        return update, output.result

    def _root_cause(self, state: GraphState) -> tuple[dict[str, Any], StageResult]:
        candidate = state.get("candidate")
        if candidate is None:
            raise RuntimeError("No candidate unit available for root-cause analysis")
        output = RootCauseAgent().execute(
            candidate, state.get("matches") or [], state.get("signals") or set()
        )
        return {"diagnosis": output.diagnosis}, output.result

    def _patch_generation(self, state: GraphState) -> tuple[dict[str, Any], StageResult]:
        candidate = state.get("candidate")
        diagnosis = state.get("diagnosis")
        if candidate is None or diagnosis is None:
            raise RuntimeError("No diagnosis available for patch generation")
        generation = state["generation"]
        output = PatchGenerationAgent().execute(
            candidate,
            diagnosis,
            state.get("matches") or [],
            state.get("files") or {},
            on_patch=lambda patch: self.tracker.record_patch(generation, patch),
        )
        return {"patches": output.patches}, output.result

    def _validation(self, state: GraphState) -> tuple[dict[str, Any], StageResult]:
        return {}, ValidationAgent().execute(state.get("patches") or [])

    def _integration(self, state: GraphState) -> tuple[dict[str, Any], StageResult]:
        result = IntegrationAgent().execute(
            state["issue"], state.get("diagnosis"), state.get("patches") or []
        )
        return {}, result

    def execute(self, state: GraphState) -> GraphState:
        """Execute the workflow from ``state["start_stage"]`` onwards.

        Args:
            state: Initial or resumed graph state

        Returns:
            Final graph state
        """
        final_state = self.graph.invoke(state)
        return final_state  # type: ignore
