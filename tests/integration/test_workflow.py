"""Integration tests for the complete Mender pipeline."""

import pytest

from mender.core.controller import PipelineController
from mender.core.models import Archetype, Issue, Repository, RunStatus, StageStatus
from mender.core.repo_client import InMemoryRepoClient, RepoClientError
from mender.core.state_machine import STAGE_IDS, InvalidTransitionError

pytestmark = pytest.mark.integration

REPO = Repository(owner="acme", name="shop", url="https://github.com/acme/shop")

CONDITIONAL_JS = """function pick(a, b, c) {
  return a ? b : c;
}

function partial(a, b) {
  const x = a ? b;
  return x;
}
"""

APP_JS = """const { partial } = require('./conditional');

function main() {
  partial(1, 2);
}
"""

USERS_JS = """async function loadUser(id) {
  try {
    return await db.find(id);
  } catch (err) {
    return null;
  }
}
"""


def make_issue(title: str, body: str = "", number: int = 7) -> Issue:
    return Issue(id=str(number), number=number, title=title, body=body, url="")


class FlakyRepoClient(InMemoryRepoClient):
    """In-memory client whose first calls to a method fail."""

    def __init__(self, files, failing: str, failures: int = 1):
        super().__init__(files=files)
        self.failing = failing
        self.failures = failures
        self.calls = {"list_files": 0, "search_code": 0}

    def list_files(self, repository):
        self.calls["list_files"] += 1
        if self.failing == "list_files" and self.failures:
            self.failures -= 1
            raise RepoClientError("GitHub API error: 503")
        return super().list_files(repository)

    def search_code(self, repository, query):
        self.calls["search_code"] += 1
        if self.failing == "search_code" and self.failures:
            self.failures -= 1
            raise RepoClientError("GitHub API error: 403")
        return super().search_code(repository, query)


class TestEndToEndScenarios:
    """End-to-end runs over in-memory repositories."""

    def test_conditional_operator_issue(self):
        """Test an operator-form issue is localized and classified as regex."""
        client = InMemoryRepoClient(files={"src/conditional.js": CONDITIONAL_JS, "src/app.js": APP_JS})
        controller = PipelineController(client)

        run = controller.execute(
            REPO, make_issue("Crash when using the ?: operator without a third operand")
        )

        assert run.status == RunStatus.COMPLETED
        assert all(stage.status == StageStatus.SUCCEEDED for stage in run.stages)

        understanding = run.stage("code-understanding").result
        assert "src/conditional.js" in understanding.summary
        assert "partial" in understanding.summary

        root_cause = run.stage("root-cause").result
        assert root_cause.summary == f"Root cause identified: {Archetype.REGEX.value} defect"
        assert "partial" in root_cause.root_cause

        primary, secondary = run.patches
        assert primary.file_path == "src/conditional.js"
        assert "const x = a ? b;" in primary.original_code
        assert "missing its third operand" in primary.modified_code
        assert primary.impacted_files == ["src/conditional.js", "src/app.js"]
        assert secondary.file_path == "src/app.js"
        assert "  try {\n    partial(1, 2);" in secondary.modified_code

        assert "fix/issue-7" in run.stage("integration").result.summary
        assert set(run.analyzed_files) == {"src/conditional.js", "src/app.js"}

    def test_empty_repository(self):
        """Test an empty file set halts the run at repository analysis."""
        controller = PipelineController(InMemoryRepoClient())

        run = controller.execute(REPO, make_issue("Anything"))

        assert run.status == RunStatus.HALTED
        failed = [stage for stage in run.stages if stage.status == StageStatus.FAILED]
        assert [stage.id for stage in failed] == ["repo-analysis"]
        assert failed[0].error == "Repository Analysis failed: No analyzable files found in acme/shop"
        assert all(stage.status == StageStatus.PENDING for stage in run.stages[1:])
        assert run.patches == []

    def test_issue_without_patterns(self):
        """Test plain data files and a patternless issue still produce a narrative."""
        client = InMemoryRepoClient(
            files={"data/values.csv": "1,2,3\n4,5,6\n", "data/notes.txt": "numbers\n"}
        )
        controller = PipelineController(client)

        run = controller.execute(REPO, make_issue("Odd", "it is bad"))

        assert run.status == RunStatus.COMPLETED
        assert run.stage("code-understanding").result.summary == "No code location matched the issue"
        root_cause = run.stage("root-cause").result
        assert "unknown" in root_cause.root_cause
        assert run.patches[0].modified_code == "// no code to patch"
        assert len(run.patches) == 1

    def test_error_handling_issue(self):
        """Test a swallowed error is patched to log and re-throw."""
        client = InMemoryRepoClient(files={"src/users.js": USERS_JS})
        controller = PipelineController(client)

        run = controller.execute(REPO, make_issue("loadUser returns null", "The catch hides the error"))

        assert run.status == RunStatus.COMPLETED
        assert 'console.error("loadUser failed:", err);' in run.patches[0].modified_code
        assert "throw err;" in run.patches[0].modified_code
        validation = run.stage("validation").result
        assert validation.summary == "1 of 1 patch(es) modify their target"


class TestPipelineController:
    """Controller behavior around observation, retry and reset."""

    def test_snapshot_is_independent(self):
        """Test mutating a snapshot never changes the run."""
        controller = PipelineController(InMemoryRepoClient(files={"src/users.js": USERS_JS}))
        controller.execute(REPO, make_issue("loadUser returns null"))

        snapshot = controller.snapshot()
        snapshot.stages[0].error = "tampered"
        snapshot.patches.clear()

        assert controller.snapshot().stages[0].error is None
        assert controller.patches

    def test_subscribers_see_every_step(self):
        """Test subscribers observe the run progressing one stage at a time."""
        controller = PipelineController(InMemoryRepoClient(files={"src/users.js": USERS_JS}))
        seen = []
        controller.subscribe(lambda run: seen.append(run.current_stage_id))

        controller.execute(REPO, make_issue("loadUser returns null"))

        stage_order = [stage_id for i, stage_id in enumerate(seen) if i == 0 or seen[i - 1] != stage_id]
        assert stage_order == STAGE_IDS

    def test_unsubscribe(self):
        """Test unsubscribed callbacks are no longer called."""
        controller = PipelineController(InMemoryRepoClient(files={"src/users.js": USERS_JS}))
        seen = []
        unsubscribe = controller.subscribe(seen.append)
        unsubscribe()

        controller.execute(REPO, make_issue("loadUser returns null"))

        assert seen == []

    def test_retry_failed_first_stage(self):
        """Test a halted run resumes at its failed stage."""
        client = FlakyRepoClient({"src/users.js": USERS_JS}, failing="list_files")
        controller = PipelineController(client)

        run = controller.execute(REPO, make_issue("loadUser returns null"))
        assert run.status == RunStatus.HALTED
        assert run.stage("repo-analysis").error == "Repository Analysis failed: GitHub API error: 503"

        run = controller.retry()

        assert run.status == RunStatus.COMPLETED
        assert run.stage("repo-analysis").error is None
        assert client.calls["list_files"] == 2

    def test_retry_keeps_earlier_results(self):
        """Test retrying a middle stage reuses the outputs of earlier stages."""
        client = FlakyRepoClient({"data.csv": "1,2,3\n"}, failing="search_code")
        controller = PipelineController(client)

        run = controller.execute(REPO, make_issue("loadUser returns null"))
        assert run.status == RunStatus.HALTED
        assert run.stage("code-understanding").status == StageStatus.FAILED
        assert run.stage("repo-analysis").status == StageStatus.SUCCEEDED

        run = controller.retry()

        assert run.status == RunStatus.COMPLETED
        assert client.calls["list_files"] == 1

    def test_retry_requires_a_failure(self):
        """Test retrying a completed run is rejected."""
        controller = PipelineController(InMemoryRepoClient(files={"src/users.js": USERS_JS}))
        controller.execute(REPO, make_issue("loadUser returns null"))

        with pytest.raises(InvalidTransitionError):
            controller.retry()

    def test_reset(self):
        """Test reset returns the run to idle."""
        controller = PipelineController(InMemoryRepoClient(files={"src/users.js": USERS_JS}))
        controller.execute(REPO, make_issue("loadUser returns null"))

        controller.reset()
        run = controller.snapshot()

        assert run.status == RunStatus.IDLE
        assert run.patches == []
        assert run.analyzed_files == {}
        assert all(stage.status == StageStatus.PENDING for stage in run.stages)

    def test_reset_discards_in_flight_results(self):
        """Test results arriving after a reset are dropped."""
        controller = None

        class ResettingClient(InMemoryRepoClient):
            def list_files(self, repository):
                controller.reset()
                return super().list_files(repository)

        controller = PipelineController(ResettingClient(files={"src/users.js": USERS_JS}))

        run = controller.execute(REPO, make_issue("loadUser returns null"))

        assert run.status == RunStatus.IDLE
        assert all(stage.result is None for stage in run.stages)
        assert run.patches == []

    def test_start_while_running(self):
        """Test a running run cannot be started again."""
        controller = PipelineController(InMemoryRepoClient(files={"src/users.js": USERS_JS}))
        controller.start(REPO, make_issue("loadUser returns null"))

        with pytest.raises(InvalidTransitionError):
            controller.start(REPO, make_issue("another"))

    def test_restart_after_completion(self):
        """Test a finished run can be executed again from scratch."""
        controller = PipelineController(InMemoryRepoClient(files={"src/users.js": USERS_JS}))
        controller.execute(REPO, make_issue("loadUser returns null"))

        run = controller.execute(REPO, make_issue("loadUser returns null"))

        assert run.status == RunStatus.COMPLETED
        assert len(run.patches) == 1
