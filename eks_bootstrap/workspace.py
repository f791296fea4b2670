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

"""Local workspace: source checkout, key file, and state directory."""

from __future__ import annotations

import shutil
from pathlib import Path

import sh
from rich.panel import Panel

from eks_bootstrap import console
from eks_bootstrap.config import ClusterConfig, WorkspaceConfig, key_file, source_path, state_dir
from eks_bootstrap.utils import error_text, log_line


def _origin_url(checkout: Path) -> str | None:
    try:
        return str(sh.git("-C", str(checkout), "remote", "get-url", "origin")).strip()
    except sh.ErrorReturnCode:
        return None


def clone_source(workspace: WorkspaceConfig) -> Path:
    """Clone the application repository into the work dir.

    An existing checkout of the same remote is reused as-is.

    Args:
        workspace: Work dir, repository URL, and clone directory name.

    Returns:
        Path to the checkout.

    Raises:
        RuntimeError: If the target exists but is not a checkout of the
            configured repository, or if ``git clone`` fails.
    """
    console.print(Panel.fit("Cloning application repository", style="bold blue"))
    target = source_path(workspace)
    if target.exists():
        origin = _origin_url(target)
        if origin == workspace.source_repo_url:
            console.print(f"[yellow]   Reusing existing checkout at {target}[/yellow]")
            return target
        raise RuntimeError(
            f"{target} exists and is not a checkout of {workspace.source_repo_url}; remove it or set SOURCE_DIR"
        )

    workspace.bootstrap_work_dir.mkdir(parents=True, exist_ok=True)
    try:
        sh.git("clone", workspace.source_repo_url, str(target), _out=log_line, _err=log_line)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to clone {workspace.source_repo_url}: {error_text(err)}") from err
    console.print(f"[green]\u2705 Cloned into {target}[/green]")
    return target


def remove_source(workspace: WorkspaceConfig) -> bool:
    """Delete the cloned source directory. Returns False if it was absent."""
    target = source_path(workspace)
    if not target.exists():
        console.print(f"[yellow]\u26a0\ufe0f  {target} not found[/yellow]")
        return False
    shutil.rmtree(target)
    console.print(f"[green]\u2705 Removed {target}[/green]")
    return True


def remove_key_file(cluster: ClusterConfig, workspace: WorkspaceConfig) -> bool:
    """Delete the local private key file. Returns False if it was absent."""
    path = key_file(cluster, workspace)
    if not path.exists():
        console.print(f"[yellow]\u26a0\ufe0f  {path} not found[/yellow]")
        return False
    # the file is 0400; unlinking only needs write access to the directory
    path.unlink()
    console.print(f"[green]\u2705 Removed {path}[/green]")
    return True


def ensure_state_dir(workspace: WorkspaceConfig) -> Path:
    path = state_dir(workspace)
    path.mkdir(parents=True, exist_ok=True)
    return path
