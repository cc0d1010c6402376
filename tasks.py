"""
Mender Development Workflow Tasks.

This module provides task automation for the Mender issue resolution
pipeline. Tasks cover installation, testing, code quality and running the
server locally.
"""

from typing import Any

from invoke import task


@task
def install(c: Any) -> None:
    """
    Install production dependencies.

    Installs the Mender package and all production dependencies using uv.
    """
    c.run("uv pip install -e .")


@task
def install_dev(c: Any, name="install-dev") -> None:
    """
    Install development dependencies.

    Installs the Mender package with testing frameworks, linting tools and
    development utilities.
    """
    c.run("uv pip install -e '.[dev]'")


@task
def test(c: Any) -> None:
    """Execute the full test suite."""
    c.run("pytest")


@task
def test_unit(c: Any, name="test-unit") -> None:
    """
    Execute unit test suite.

    Runs only unit tests, excluding integration tests for faster
    feedback during development cycles.
    """
    c.run("pytest tests/unit -m 'not integration'")


@task
def test_integration(c: Any, name="test-integration") -> None:
    """
    Execute integration test suite.

    Runs the end-to-end pipeline and HTTP tests.
    """
    c.run("pytest tests/integration -m integration")


@task
def test_coverage(c: Any, name="test-coverage") -> None:
    """
    Execute test suite with coverage analysis.

    Generates coverage reports in both HTML and terminal formats.
    """
    c.run("pytest --cov=src/mender --cov-report=html --cov-report=term-missing")


@task
def lint(c: Any) -> None:
    """
    Execute code quality and style checks.

    Runs Ruff for Python code analysis and MyPy for static type checking.
    """
    c.run("ruff check src/ tests/")
    c.run("mypy src/")


@task
def format_code(c: Any) -> None:
    """
    Format codebase with automated code formatting.

    Applies Black, isort and Ruff fixes across the codebase.
    """
    c.run("black src/ tests/")
    c.run("isort src/ tests/")
    c.run("ruff check --fix src/ tests/")


@task
def clean(c: Any) -> None:
    """
    Clean up generated files and build artifacts.

    Removes caches, coverage output and build directories.
    """
    c.run("find . -type f -name '*.pyc' -delete")
    c.run("find . -type d -name '__pycache__' -delete")
    c.run("find . -type d -name '*.egg-info' -exec rm -rf {} + || true")
    c.run("rm -rf build/")
    c.run("rm -rf dist/")
    c.run("rm -rf .coverage")
    c.run("rm -rf htmlcov/")
    c.run("rm -rf .pytest_cache/")
    c.run("rm -rf .mypy_cache/")


@task
def run(c: Any) -> None:
    """
    Start the Mender server.

    Launches the FastAPI server using the host and port from the settings.
    """
    c.run("python main.py")


@task
def dev(c: Any) -> None:
    """
    Start development server with auto-reload.

    Launches the FastAPI server in development mode with automatic reloading.
    """
    c.run("uvicorn mender.main:app --app-dir src --reload --host 0.0.0.0 --port 8000")


@task
def workflow_demo(c: Any, repo_url: str = "https://github.com/octocat/Hello-World") -> None:
    """
    Execute the pipeline demonstration against a running server.

    Args:
        repo_url: GitHub repository URL the demo issue is filed against
    """
    c.run(f"python scripts/demo_workflow.py {repo_url}")
