"""Thin async wrapper around the ``az`` command line."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Sequence

import structlog

from envrefresh.core.errors import AuthenticationError, CollaboratorError, PrerequisiteError

logger = structlog.get_logger()

AUTH_FAILURE = re.compile(r"az login|AADSTS\d+|not logged in|token has expired", re.IGNORECASE)
NOT_FOUND = re.compile(r"ResourceNotFound|was not found|could not be found", re.IGNORECASE)


class AzNotFoundError(CollaboratorError):
    """The addressed Azure resource does not exist."""


async def run_process(command: Sequence[str]) -> tuple[int, str, str]:
    """Run a program and return (exit status, stdout, stderr)."""
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise PrerequisiteError(f"Executable not found: {command[0]}") from exc
    stdout, stderr = await process.communicate()
    return process.returncode or 0, stdout.decode().strip(), stderr.decode().strip()


class AzCli:
    """Runs ``az`` sub-commands with JSON output."""

    def __init__(self, executable: str = "az") -> None:
        self._executable = executable

    async def run(self, *args: str) -> Any:
        command = [self._executable, *args, "--output", "json"]
        logger.debug("az_command", command=" ".join(args[:3]))
        status, stdout, stderr = await run_process(command)
        if status != 0:
            summary = " ".join(args[:3])
            details = {"command": summary, "exit_status": status, "stderr": stderr[:300]}
            if NOT_FOUND.search(stderr):
                raise AzNotFoundError(f"az {summary}: resource not found", details)
            if AUTH_FAILURE.search(stderr):
                raise AuthenticationError(f"az {summary}: not authenticated", details)
            raise CollaboratorError(f"az {summary} failed", details)
        if not stdout:
            return None
        try:
            return json.loads(stdout)
        except json.JSONDecodeError:
            return stdout
