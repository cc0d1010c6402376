"""Unit tests for the pipeline stage agents."""

from unittest.mock import MagicMock, patch

import pytest

from mender.agents.code_understanding import CodeUnderstandingAgent
from mender.agents.integration import IntegrationAgent, branch_name, pull_request_body
from mender.agents.issue_context import IssueContextAgent
from mender.agents.patch_generation import PatchGenerationAgent, compute_impacted_files
from mender.agents.repo_analysis import RepoAnalysisAgent, is_analyzable
from mender.agents.root_cause import RootCauseAgent
from mender.agents.validation import ValidationAgent, unified_diff
from mender.core.models import (
    Archetype,
    CandidateUnit,
    CodeSearchHit,
    Diagnosis,
    Issue,
    Match,
    Patch,
    Repository,
)
from mender.core.repo_client import InMemoryRepoClient, RepoClientError

REPO = Repository(owner="acme", name="shop", url="https://github.com/acme/shop")

LOADER = """function loadUser(id) {
  try {
    return db.find(id);
  } catch (err) {
    return null;
  }
}
"""


def issue(title: str, body: str = "", number: int = 12) -> Issue:
    return Issue(id=str(number), number=number, title=title, body=body, url="")


class TestRepoAnalysisAgent:
    """Test cases for RepoAnalysisAgent."""

    def test_skips_binary_files(self):
        """Test assets are filtered before fetching."""
        client = InMemoryRepoClient(files={"src/a.js": "a", "logo.png": "x", "app.min.js": "m"})

        output = RepoAnalysisAgent(client).execute(REPO)

        assert output.files == {"src/a.js": "a"}
        assert output.result.analyzed_files == ["src/a.js"]

    def test_caps_file_count(self):
        """Test the number of fetched files is limited."""
        client = InMemoryRepoClient(files={f"f{i}.js": str(i) for i in range(5)})
        output = RepoAnalysisAgent(client, max_files=2).execute(REPO)
        assert list(output.files) == ["f0.js", "f1.js"]

    def test_empty_file_set(self):
        """Test an empty repository is a stage failure."""
        with pytest.raises(RuntimeError, match="No analyzable files found in acme/shop"):
            RepoAnalysisAgent(InMemoryRepoClient()).execute(REPO)

    def test_provider_error_propagates(self):
        """Test provider errors are not swallowed."""
        client = MagicMock()
        client.list_files.side_effect = RepoClientError("GitHub API error: 500")
        with pytest.raises(RepoClientError):
            RepoAnalysisAgent(client).execute(REPO)

    def test_is_analyzable(self):
        """Test extension matching is case-insensitive."""
        assert is_analyzable("src/index.js")
        assert not is_analyzable("IMG/PHOTO.JPG")


class TestIssueContextAgent:
    """Test cases for IssueContextAgent."""

    def test_signals(self):
        """Test signals come from title and body."""
        output = IssueContextAgent().execute(issue("loadUser swallows errors", "see `db.find`"))
        assert {"loadUser", "swallows", "errors", "db.find"} <= output.signals
        assert "12" in output.result.summary

    def test_no_signals(self):
        """Test an issue without signals still succeeds."""
        output = IssueContextAgent().execute(issue("Odd", "it is bad"))
        assert output.signals == set()
        assert "no localization possible" in output.result.summary


class TestCodeUnderstandingAgent:
    """Test cases for CodeUnderstandingAgent."""

    def test_selects_containing_function(self):
        """Test the candidate is the function around the top match."""
        files = {"src/users.js": LOADER}
        output = CodeUnderstandingAgent(InMemoryRepoClient(files)).execute(
            REPO, files, {"db.find"}
        )

        assert output.candidate.name == "loadUser"
        assert output.candidate.file_path == "src/users.js"
        assert output.matches[0].matching_line == 3
        assert output.result.snippets[0].is_error

    def test_raw_excerpt_without_functions(self):
        """Test a fixed excerpt is used when segmentation finds nothing."""
        content = "\n".join(f"key{i}=value{i}" for i in range(30))
        files = {"settings.ini": content}
        output = CodeUnderstandingAgent(InMemoryRepoClient(files)).execute(
            REPO, files, {"key3=value3"}
        )

        assert output.candidate.name == "unknown"
        assert output.candidate.line_start == 1
        assert output.candidate.code.count("\n") == 19

    def test_no_match(self):
        """Test the candidate is empty and unknown without matches."""
        files = {"data.csv": "1,2,3\n"}
        client = MagicMock()
        client.search_code.return_value = []

        output = CodeUnderstandingAgent(client).execute(REPO, files, {"loadUser"})

        assert output.matches == []
        assert output.candidate.name == "unknown"
        assert output.candidate.code == ""
        client.search_code.assert_called_once_with(REPO, "loadUser")

    def test_search_fallback(self):
        """Test code search discovers files outside the analyzed set."""
        client = MagicMock()
        client.search_code.return_value = [CodeSearchHit(path="src/users.js", url="")]
        client.get_file_content.return_value = LOADER

        output = CodeUnderstandingAgent(client).execute(REPO, {"a.txt": "nothing"}, {"loadUser"})

        assert output.discovered_files == {"src/users.js": LOADER}
        assert output.candidate.name == "loadUser"

    def test_no_signals_skips_search(self):
        """Test an empty signal set never queries the provider."""
        client = MagicMock()
        output = CodeUnderstandingAgent(client).execute(REPO, {"a.js": "x"}, set())
        assert output.candidate.name == "unknown"
        client.search_code.assert_not_called()


class TestRootCauseAgent:
    """Test cases for RootCauseAgent."""

    def test_diagnosis(self):
        """Test the stage result carries the narrative."""
        unit = CandidateUnit("loadUser", ["id"], LOADER.strip(), 1, "src/users.js")

        output = RootCauseAgent().execute(unit, [], {"loadUser"})

        assert output.diagnosis.archetype == Archetype.ERROR_HANDLING
        assert output.result.root_cause == output.diagnosis.root_cause
        assert output.result.solution == output.diagnosis.solution
        assert output.result.snippets[0].file_path == "src/users.js"


class TestPatchGenerationAgent:
    """Test cases for PatchGenerationAgent."""

    def setup_method(self):
        """Set up a candidate and its diagnosis."""
        self.unit = CandidateUnit("loadUser", ["id"], LOADER.strip(), 1, "src/users.js")
        self.diagnosis = Diagnosis(Archetype.ERROR_HANDLING, "cause", "Log and re-throw.")
        self.files = {
            "src/users.js": LOADER,
            "src/api.js": "function show(id) {\n  return loadUser(id);\n}\n",
            "src/other.js": "noop();\n",
        }

    def test_impacted_files(self):
        """Test primary first, then matched files, then files naming the unit."""
        matches = [
            Match("src/other.js", 1, 1, 1, "noop();", "noop"),
            Match("src/users.js", 1, 7, 3, LOADER, "db.find"),
        ]
        impacted = compute_impacted_files(self.unit, matches, self.files)
        assert impacted == ["src/users.js", "src/other.js", "src/api.js"]

    def test_impacted_files_cap(self):
        """Test the impacted list is capped."""
        files = {f"f{i}.js": "loadUser()" for i in range(10)}
        assert len(compute_impacted_files(self.unit, [], files, limit=3)) == 3

    def test_primary_and_secondary_patch(self):
        """Test one primary and at most one secondary patch."""
        recorded = []

        output = PatchGenerationAgent().execute(
            self.unit, self.diagnosis, [], self.files, on_patch=recorded.append
        )

        primary, secondary = output.patches
        assert primary.file_path == "src/users.js"
        assert "throw err;" in primary.modified_code
        assert primary.explanation == "Log and re-throw."
        assert primary.impacted_files == ["src/users.js", "src/api.js"]
        assert secondary.file_path == "src/api.js"
        assert secondary.original_code == self.files["src/api.js"]
        assert "try {" in secondary.modified_code
        assert recorded == output.patches

    def test_only_primary_without_impacted_files(self):
        """Test no secondary patch when nothing else is impacted."""
        output = PatchGenerationAgent().execute(
            self.unit, self.diagnosis, [], {"src/users.js": LOADER}
        )
        assert len(output.patches) == 1


class TestValidationAgent:
    """Test cases for ValidationAgent."""

    def test_summarizes_changes(self):
        """Test changed patches get a unified diff snippet."""
        patches = [
            Patch("a.js", "let a = 1;\n", "let a = 2;\n", "fix"),
            Patch("b.js", "same\n", "same\n", "noop"),
        ]

        result = ValidationAgent().execute(patches)

        assert result.summary == "1 of 2 patch(es) modify their target"
        assert "a.js: changes code" in result.details
        assert "b.js: no change" in result.details
        assert len(result.snippets) == 1
        assert "-let a = 1;" in result.snippets[0].code
        assert "+let a = 2;" in result.snippets[0].code

    def test_unified_diff_headers(self):
        """Test diff file headers."""
        diff = unified_diff(Patch("a.js", "x", "y", ""))
        assert diff.startswith("--- a/a.js\n+++ b/a.js\n")
        assert diff.endswith("-x\n+y\n")


class TestIntegrationAgent:
    """Test cases for IntegrationAgent."""

    def test_pull_request_proposal(self):
        """Test the branch, title and body of the proposal."""
        subject = issue("Errors swallowed", number=42)
        diagnosis = Diagnosis(Archetype.ERROR_HANDLING, "Swallowed.", "Re-throw.")
        patches = [Patch("src/users.js", "a", "b", "fix")]

        result = IntegrationAgent().execute(subject, diagnosis, patches)

        assert branch_name(subject) == "fix/issue-42"
        assert result.summary == "Proposed branch fix/issue-42: Fix #42: Errors swallowed"
        assert "Resolves #42." in result.details
        assert "Swallowed." in result.details
        assert "`src/users.js`" in result.details

    def test_body_without_diagnosis(self):
        """Test the body when root-cause analysis produced nothing."""
        body = pull_request_body(issue("Crash", number=1), None, [])
        assert body == "Resolves #1."


@patch("mender.agents.repo_analysis.SKIPPED_EXTENSIONS", [".txt"])
def test_skipped_extensions_are_configurable():
    """Test the deny-list comes from the settings module."""
    client = InMemoryRepoClient(files={"notes.txt": "n", "a.js": "a"})
    assert list(RepoAnalysisAgent(client).execute(REPO).files) == ["a.js"]
