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

"""Argo CD namespace, installation, readiness, and admin credential."""

from __future__ import annotations

import json

import sh
from rich.panel import Panel
from tenacity import RetryError, retry, stop_after_attempt, wait_fixed

from eks_bootstrap import console
from eks_bootstrap.config import ArgoCDConfig
from eks_bootstrap.constants import (
    ADMIN_SECRET_PATCH_MAX_RETRIES,
    ADMIN_SECRET_PATCH_POLL_INTERVAL_SECONDS,
    ARGOCD_INITIAL_ADMIN_SECRET,
    ARGOCD_ROLLOUT_TIMEOUT,
    ARGOCD_SERVER_SERVICE,
)
from eks_bootstrap.utils import error_text, run_kubectl


# ============================================================================
# Namespace
# ============================================================================

def namespace_exists(argocd: ArgoCDConfig) -> bool:
    ok, _, _ = run_kubectl(["get", "namespace", argocd.argocd_namespace])
    return ok


def create_namespace(argocd: ArgoCDConfig) -> None:
    """Create the Argo CD namespace; an existing namespace is reused.

    Raises:
        RuntimeError: If namespace creation fails for any other reason.
    """
    namespace = argocd.argocd_namespace
    ok, _, stderr = run_kubectl(["create", "namespace", namespace])
    if not ok and "AlreadyExists" not in stderr:
        raise RuntimeError(f"Failed to create namespace {namespace}: {stderr}")
    if ok:
        console.print(f"[green]  \u2713 Namespace '{namespace}' created[/green]")
    else:
        console.print(f"[yellow]   Namespace '{namespace}' already exists[/yellow]")


def delete_namespace(argocd: ArgoCDConfig, timeout: int = 300) -> bool:
    """Delete the Argo CD namespace and everything in it.

    Returns:
        True if the namespace existed and was deleted, False if it was absent.

    Raises:
        RuntimeError: If the namespace exists but cannot be deleted, or the
            cluster is unreachable.
    """
    namespace = argocd.argocd_namespace
    console.print(f"[yellow]\u2139\ufe0f  Deleting namespace '{namespace}'...[/yellow]")
    ok, stdout, stderr = run_kubectl(
        ["delete", "namespace", namespace, "--ignore-not-found", f"--timeout={timeout}s"],
        timeout=timeout + 10,
    )
    if not ok:
        raise RuntimeError(f"Failed to delete namespace {namespace}: {stderr.strip()}")
    if not stdout.strip():
        console.print(f"[yellow]\u26a0\ufe0f  Namespace '{namespace}' not found[/yellow]")
        return False
    console.print(f"[green]\u2705 Namespace '{namespace}' deleted[/green]")
    return True


# ============================================================================
# Install
# ============================================================================

def install_argocd(argocd: ArgoCDConfig) -> None:
    """Create the namespace and apply the Argo CD install manifest into it.

    Args:
        argocd: Namespace and install manifest URL.
    """
    console.print(Panel.fit("Installing Argo CD", style="bold blue"))
    console.print(f"[yellow]Manifest: {argocd.argocd_manifest_url}[/yellow]")
    create_namespace(argocd)
    try:
        sh.kubectl("apply", "-n", argocd.argocd_namespace, "-f", argocd.argocd_manifest_url)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to apply Argo CD manifest: {error_text(err)}") from err
    console.print("[green]\u2705 Argo CD manifests applied[/green]")


def wait_for_server(argocd: ArgoCDConfig, timeout: str = ARGOCD_ROLLOUT_TIMEOUT) -> None:
    """Wait for the argocd-server deployment rollout to finish."""
    console.print("[yellow]\u2139\ufe0f  Waiting for Argo CD server rollout...[/yellow]")
    try:
        sh.kubectl(
            "rollout", "status", f"deployment/{ARGOCD_SERVER_SERVICE}",
            "-n", argocd.argocd_namespace,
            f"--timeout={timeout}",
        )
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Argo CD server did not become ready: {error_text(err)}") from err
    console.print("[green]\u2705 Argo CD server is ready[/green]")


# ============================================================================
# Admin credential
# ============================================================================

@retry(
    stop=stop_after_attempt(ADMIN_SECRET_PATCH_MAX_RETRIES),
    wait=wait_fixed(ADMIN_SECRET_PATCH_POLL_INTERVAL_SECONDS),
    reraise=True,
)
def _patch_admin_secret(namespace: str, patch: str) -> None:
    """Patch the initial admin secret, retrying until Argo CD has created it.

    Raises:
        RuntimeError: If the secret cannot be patched.
    """
    try:
        sh.kubectl("patch", "secret", ARGOCD_INITIAL_ADMIN_SECRET, "-n", namespace, "-p", patch)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to patch {ARGOCD_INITIAL_ADMIN_SECRET}: {error_text(err)}") from err


def set_admin_password(argocd: ArgoCDConfig) -> None:
    """Write the configured password into the initial admin secret.

    Raises:
        RuntimeError: If the secret does not appear within the retry budget.
    """
    console.print(Panel.fit("Setting Argo CD admin password", style="bold blue"))
    patch = json.dumps({"stringData": {"password": argocd.argocd_admin_password.get_secret_value()}})
    try:
        _patch_admin_secret(argocd.argocd_namespace, patch)
    except (RuntimeError, RetryError) as err:
        raise RuntimeError(f"Timed out setting the Argo CD admin password: {err}") from err
    console.print("[green]\u2705 Admin password set[/green]")
