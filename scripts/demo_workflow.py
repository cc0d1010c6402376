#!/usr/bin/env python3
"""
Mender Pipeline Demonstration

This script submits an issue to a running Mender server and follows the run
stage by stage until it completes or halts, then prints the proposed patches.

Use Case: An error-handling defect reported against a small JavaScript service.
"""

import sys
import time
from typing import Any

import requests

ISSUE = {
    "number": 42,
    "title": "Errors swallowed in fetchUser",
    "body": (
        "When the request fails, `fetchUser` catches the error and returns nothing.\n"
        "The caller never learns about the failure:\n"
        "```\ntry { ... } catch (err) { }\n```"
    ),
}


def check_server_health(url: str) -> bool:
    """Check if the Mender server is running and healthy."""
    try:
        response = requests.get(f"{url}/health", timeout=5)
        return response.status_code == 200
    except requests.exceptions.RequestException:
        return False


def display_run(run: dict[str, Any]) -> None:
    """Display the stage list of a run."""
    print("\n" + "=" * 60)
    print(f"RUN {run['run_id']} - {run['status'].upper()}")
    print("=" * 60)
    for stage in run["stages"]:
        print(f"[{stage['status']:>9}] {stage['display_name']} ({stage['model']})")
        if stage.get("result"):
            print(f"            {stage['result']['summary']}")
        if stage.get("error"):
            print(f"            ERROR: {stage['error']}")


def display_patches(patches: list[dict[str, Any]]) -> None:
    for patch in patches:
        print(f"\nPatch for {patch['file_path']}")
        print("  " + "-" * 50)
        lines = patch["modified_code"].split("\n")
        for line in lines[:20]:  # Show first 20 lines
            print(f"  {line}")
        if len(lines) > 20:
            print(f"  ... ({len(lines) - 20} more lines)")
        print("  " + "-" * 50)


def main():
    """Execute the Mender pipeline demonstration."""
    mender_url = "http://localhost:8000"
    repo_url = sys.argv[1] if len(sys.argv) > 1 else "https://github.com/octocat/Hello-World"

    print("Mender Pipeline Demonstration")
    print("=" * 50)
    print(f"Repository: {repo_url}")
    print(f"Issue: #{ISSUE['number']} {ISSUE['title']}")
    print()

    if not check_server_health(mender_url):
        print("ERROR: Mender server is not running or not responding")
        print("Please start the server with: python main.py")
        sys.exit(1)

    try:
        response = requests.post(
            f"{mender_url}/runs", json={"repo_url": repo_url, "issue": ISSUE}, timeout=30
        )
        if response.status_code != 201:
            print(f"ERROR: Run request failed with status {response.status_code}")
            print(f"Response: {response.text}")
            sys.exit(1)

        run_id = response.json()["run_id"]
        start_time = time.time()
        while True:
            run = requests.get(f"{mender_url}/runs/{run_id}", timeout=10).json()
            if run["status"] != "running":
                break
            time.sleep(1)

        print(f"Run finished in {time.time() - start_time:.2f} seconds")
        display_run(run)

        patches = requests.get(f"{mender_url}/runs/{run_id}/patches", timeout=10).json()
        display_patches(patches)

    except requests.exceptions.RequestException as e:
        print(f"ERROR: Request failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
