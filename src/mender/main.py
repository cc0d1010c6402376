"""
Mender API Server - Issue-to-patch pipeline over HTTP.

This module provides the FastAPI application that starts pipeline runs for
repository issues, exposes their stage-by-stage progress and proposed patches,
and lets callers retry a halted run or reset it.
"""

import dataclasses
import logging
from collections import OrderedDict
from typing import Any

import uvicorn
from fastapi import BackgroundTasks, FastAPI, HTTPException, status
from fastapi.encoders import jsonable_encoder

from .config.settings import (
    GITHUB_TOKEN,
    LOCAL_REPO_PATH,
    LOG_FORMAT,
    LOG_LEVEL,
    MAX_STORED_RUNS,
    REPO_CLIENT,
    SERVER_HOST,
    SERVER_PORT,
)
from .core.controller import PipelineController
from .core.models import Issue, PipelineRun, Repository, RunRequest
from .core.repo_client import (
    RepoClient,
    RepoClientError,
    create_repo_client,
    filter_issues,
    local_repository,
    parse_repository_url,
)
from .core.state_machine import InvalidTransitionError

# Configure logging
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

# Initialize FastAPI application
app = FastAPI(
    title="Mender Issue Resolution Pipeline",
    description="Staged pipeline that localizes a reported defect and proposes a patch",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Repository client is created lazily so importing the app never hits the network
_repo_client: RepoClient | None = None
_runs: "OrderedDict[str, PipelineController]" = OrderedDict()


def _initialize_repo_client() -> RepoClient:
    """Return the configured repository client, creating it on first use."""
    global _repo_client

    if _repo_client is None:
        logger.info(f"Initializing {REPO_CLIENT} repository client...")
        _repo_client = create_repo_client(REPO_CLIENT, token=GITHUB_TOKEN, repo_path=LOCAL_REPO_PATH)

    return _repo_client


def _register_run(controller: PipelineController) -> None:
    """Store a run, evicting the oldest ones beyond ``MAX_STORED_RUNS``."""
    _runs[controller.run_id] = controller
    while len(_runs) > MAX_STORED_RUNS:
        evicted, _ = _runs.popitem(last=False)
        logger.info(f"Evicted run {evicted}")


def _get_run(run_id: str) -> PipelineController:
    controller = _runs.get(run_id)
    if controller is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Run {run_id} not found")
    return controller


def _serialize_run(run: PipelineRun) -> dict[str, Any]:
    """Render a run for the API, listing analyzed file paths without contents."""
    data = dataclasses.asdict(run)
    data["analyzed_files"] = sorted(run.analyzed_files)
    data["status"] = run.status.value
    return jsonable_encoder(data)


def _resolve_repository(request: RunRequest) -> Repository:
    if REPO_CLIENT == "local":
        return local_repository(LOCAL_REPO_PATH, request.branch)
    try:
        return parse_repository_url(request.repo_url, request.branch)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


def _resolve_issue(client: RepoClient, repository: Repository, request: RunRequest) -> Issue:
    if request.issue is not None:
        return request.issue.to_issue()
    assert request.issue_number is not None
    try:
        return client.get_issue(repository, request.issue_number)
    except RepoClientError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e


@app.post("/runs", status_code=status.HTTP_201_CREATED)
async def create_run(request: RunRequest, background_tasks: BackgroundTasks) -> dict[str, Any]:
    """
    Start a pipeline run for one issue.

    The run is registered and its first stage marked running before the
    response is sent; the stages themselves execute in the background.

    Args:
        request: Repository URL plus an issue number or an inline issue

    Returns:
        Run ID and initial status

    Raises:
        HTTPException: If the repository URL is invalid or the issue cannot be fetched
    """
    client = _initialize_repo_client()
    repository = _resolve_repository(request)
    issue = _resolve_issue(client, repository, request)

    controller = PipelineController(client)
    controller.start(repository, issue)
    _register_run(controller)

    # Sync callables run in the threadpool once the response is sent
    background_tasks.add_task(controller.resume)

    logger.info(f"Created run {controller.run_id}")
    return {"run_id": controller.run_id, "status": controller.snapshot().status.value}


@app.get("/runs/{run_id}")
async def get_run(run_id: str) -> dict[str, Any]:
    """Return the current snapshot of a run."""
    return _serialize_run(_get_run(run_id).snapshot())


@app.get("/runs/{run_id}/patches")
async def get_patches(run_id: str) -> list[dict[str, Any]]:
    """Return the patches produced so far."""
    patches = _get_run(run_id).patches
    return jsonable_encoder([dataclasses.asdict(patch) for patch in patches])


@app.post("/runs/{run_id}/retry")
async def retry_run(run_id: str, background_tasks: BackgroundTasks) -> dict[str, Any]:
    """Resume a halted run at its failed stage."""
    controller = _get_run(run_id)
    try:
        stage_id = controller.begin_retry()
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    background_tasks.add_task(controller.resume)
    return {"run_id": run_id, "stage_id": stage_id, "status": controller.snapshot().status.value}


@app.post("/runs/{run_id}/reset")
async def reset_run(run_id: str) -> dict[str, Any]:
    """Discard every stage result and patch of a run."""
    controller = _get_run(run_id)
    controller.reset()
    return _serialize_run(controller.snapshot())


@app.get("/repos/{owner}/{name}/issues")
async def list_issues(owner: str, name: str, q: str = "") -> list[dict[str, Any]]:
    """List a repository's open issues, optionally filtered by a search query."""
    client = _initialize_repo_client()
    repository = Repository(owner=owner, name=name, url=f"https://github.com/{owner}/{name}")
    try:
        issues = client.list_issues(repository)
    except RepoClientError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    return jsonable_encoder([dataclasses.asdict(issue) for issue in filter_issues(issues, q)])


@app.get("/health")
async def health_check() -> dict[str, str]:
    """
    System health check endpoint.

    Returns:
        Health status information
    """
    return {"status": "healthy", "service": "mender-pipeline"}


def main():
    """Run the FastAPI server."""
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)


if __name__ == "__main__":
    main()
