"""Data models for the Mender system."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, model_validator


class StageStatus(str, Enum):
    """Status of a single pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Status of a pipeline run as a whole."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    HALTED = "halted-on-error"


class Archetype(str, Enum):
    """Defect categories driving both the narrative and the patch."""

    REGEX = "regex"
    ERROR_HANDLING = "error-handling"
    ASYNC = "async"
    VALIDATION = "validation"


@dataclass(frozen=True)
class Repository:
    """A connected source repository."""

    owner: str
    name: str
    url: str
    default_branch: str = "main"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class Issue:
    """A bug-tracker issue."""

    id: str
    number: int
    title: str
    body: str
    url: str
    labels: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        """Title and body joined for signal extraction."""
        return f"{self.title}\n{self.body}".strip()


@dataclass(frozen=True)
class SourceFile:
    """One file of the analyzed file set."""

    path: str
    content: str


@dataclass(frozen=True)
class CodeSearchHit:
    """A hit returned by the repository code search."""

    path: str
    url: str


@dataclass(frozen=True)
class Match:
    """A (file, line range) hit where a signal was found."""

    file_path: str
    line_start: int
    line_end: int
    matching_line: int
    code: str
    signal: str


@dataclass
class CandidateUnit:
    """A function-like block of code suspected to contain the defect."""

    name: str
    parameters: list[str]
    code: str
    line_start: int
    file_path: str = ""

    @property
    def line_end(self) -> int:
        return self.line_start + self.code.count("\n")


@dataclass
class Diagnosis:
    """Output from the root-cause classifier."""

    archetype: Archetype
    root_cause: str
    solution: str


@dataclass
class CodeSnippet:
    """A code excerpt attached to a stage result."""

    file_path: str
    code: str
    line_start: int | None = None
    line_end: int | None = None
    is_error: bool = False


@dataclass
class StageResult:
    """Result attached to a completed stage."""

    summary: str
    details: str = ""
    root_cause: str | None = None
    solution: str | None = None
    snippets: list[CodeSnippet] = field(default_factory=list)
    related_files: list[str] = field(default_factory=list)
    analyzed_files: list[str] = field(default_factory=list)


@dataclass
class Patch:
    """A proposed change to one file."""

    file_path: str
    original_code: str
    modified_code: str
    explanation: str
    impacted_files: list[str] = field(default_factory=list)


@dataclass
class Stage:
    """One named step of the fixed pipeline sequence."""

    id: str
    display_name: str
    model: str = ""
    status: StageStatus = StageStatus.PENDING
    result: StageResult | None = None
    error: str | None = None


@dataclass
class PipelineRun:
    """One end-to-end execution of the staged pipeline."""

    run_id: str
    stages: list[Stage]
    current_stage_id: str | None = None
    patches: list[Patch] = field(default_factory=list)
    repository: Repository | None = None
    issue: Issue | None = None
    analyzed_files: dict[str, str] = field(default_factory=dict)

    @property
    def status(self) -> RunStatus:
        statuses = [stage.status for stage in self.stages]
        if StageStatus.RUNNING in statuses:
            return RunStatus.RUNNING
        if StageStatus.FAILED in statuses:
            return RunStatus.HALTED
        if statuses and all(s == StageStatus.SUCCEEDED for s in statuses):
            return RunStatus.COMPLETED
        return RunStatus.IDLE

    def stage(self, stage_id: str) -> Stage:
        """Look up a stage by id."""
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        raise KeyError(f"Unknown stage: {stage_id}")

    def add_analyzed_file(self, path: str, content: str) -> None:
        self.analyzed_files[path] = content

    def add_analyzed_files(self, files: dict[str, str]) -> None:
        self.analyzed_files.update(files)

    def find_files_containing(self, pattern: str) -> list[SourceFile]:
        """Return every analyzed file whose text contains the literal pattern."""
        return [
            SourceFile(path=path, content=content)
            for path, content in self.analyzed_files.items()
            if pattern in content
        ]


class IssuePayload(BaseModel):
    """Issue supplied inline with a run request."""

    title: str
    body: str = ""
    number: int = 0
    url: str = ""
    labels: list[str] = []

    def to_issue(self) -> Issue:
        return Issue(
            id=str(self.number),
            number=self.number,
            title=self.title,
            body=self.body,
            url=self.url,
            labels=tuple(self.labels),
        )


class RunRequest(BaseModel):
    """Request model for starting a run."""

    repo_url: str
    issue_number: int | None = None
    issue: IssuePayload | None = None
    branch: str = "main"

    @model_validator(mode="after")
    def _require_issue(self) -> "RunRequest":
        if self.issue_number is None and self.issue is None:
            raise ValueError("Either issue_number or issue must be provided")
        return self


def issue_from_github(data: dict[str, Any]) -> Issue:
    """Build an Issue from a GitHub REST API issue payload."""
    return Issue(
        id=str(data["id"]),
        number=data["number"],
        title=data.get("title") or "",
        body=data.get("body") or "",
        url=data.get("html_url", ""),
        labels=tuple(label["name"] for label in data.get("labels", [])),
    )


@dataclass
class RepoAnalysisOutput:
    """Output from repository analysis."""

    files: dict[str, str]
    result: StageResult


@dataclass
class IssueContextOutput:
    """Output from issue context extraction."""

    signals: set[str]
    result: StageResult


@dataclass
class CodeUnderstandingOutput:
    """Output from code understanding."""

    matches: list[Match]
    candidate: CandidateUnit
    result: StageResult
    discovered_files: dict[str, str] = field(default_factory=dict)


@dataclass
class RootCauseOutput:
    """Output from root-cause analysis."""

    diagnosis: Diagnosis
    result: StageResult


@dataclass
class PatchGenerationOutput:
    """Output from patch generation."""

    patches: list[Patch]
    result: StageResult
