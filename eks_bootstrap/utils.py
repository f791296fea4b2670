# /*
# Copyright 2026 The eks-bootstrap Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Utility functions for kubectl, CLI fault classification, and command checks."""

from __future__ import annotations

import subprocess

import sh

from eks_bootstrap import logger
from eks_bootstrap.constants import ALREADY_EXISTS_MARKERS, NOT_FOUND_MARKERS


def error_text(err: sh.ErrorReturnCode) -> str:
    """Return the decoded stderr (falling back to stdout) of a failed command."""
    stderr = err.stderr.decode(errors="replace") if isinstance(err.stderr, bytes) else str(err.stderr or "")
    if stderr.strip():
        return stderr.strip()
    stdout = err.stdout.decode(errors="replace") if isinstance(err.stdout, bytes) else str(err.stdout or "")
    if stdout.strip():
        return stdout.strip()
    # output was streamed to the logger
    return f"exit code {getattr(err, 'exit_code', '?')}, see log output above"


def is_already_exists(message: str) -> bool:
    """Whether CLI output reports that the target resource already exists."""
    return any(marker in message for marker in ALREADY_EXISTS_MARKERS)


def is_not_found(message: str) -> bool:
    """Whether CLI output reports that the target resource does not exist."""
    return any(marker in message for marker in NOT_FOUND_MARKERS)


def log_line(line: str) -> None:
    """sh ``_out``/``_err`` callback that forwards tool output to the logger."""
    line = line.rstrip()
    if line:
        logger.info("  %s", line)


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    message = f"Required command '{cmd}' not found. Please install it first."
    try:
        path = sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(message) from err
    if not path:
        raise RuntimeError(message)


def run_kubectl(args: list[str], timeout: int = 30) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Used where the caller branches on stderr content (e.g. ``AlreadyExists``)
    rather than on an exception.

    Args:
        args: kubectl arguments (e.g. ``["get", "namespace", "argocd"]``).
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    try:
        result = subprocess.run(
            ["kubectl", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)
