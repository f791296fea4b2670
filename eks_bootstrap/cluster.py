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

"""EC2 key pair and EKS cluster lifecycle."""

from __future__ import annotations

import os
from pathlib import Path

import sh
from rich.panel import Panel

from eks_bootstrap import console, logger
from eks_bootstrap.config import AwsConfig, ClusterConfig, WorkspaceConfig, key_file
from eks_bootstrap.constants import KEY_FILE_MODE, NODES_READY_TIMEOUT
from eks_bootstrap.utils import error_text, is_not_found, log_line, run_kubectl


# ============================================================================
# SSH key pair
# ============================================================================

def key_pair_exists(aws: AwsConfig, cluster: ClusterConfig) -> bool:
    """Check whether the EC2 key pair exists in the configured region.

    Raises:
        RuntimeError: On any failure other than the key pair being absent.
    """
    try:
        sh.aws(
            "ec2", "describe-key-pairs",
            "--key-names", cluster.ssh_key_name,
            "--region", aws.aws_region,
            "--output", "json",
        )
    except sh.ErrorReturnCode as err:
        message = error_text(err)
        if is_not_found(message):
            return False
        raise RuntimeError(f"Failed to describe key pair '{cluster.ssh_key_name}': {message}") from err
    return True


def _write_private_key(path: Path, material: str) -> None:
    """Write key material to a new file that is readable by the owner only."""
    if not material.endswith("\n"):
        material += "\n"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, KEY_FILE_MODE)
    with os.fdopen(fd, "w") as f:
        f.write(material)
    # O_CREAT mode is filtered through the umask
    path.chmod(KEY_FILE_MODE)


def create_key_pair(aws: AwsConfig, cluster: ClusterConfig, workspace: WorkspaceConfig) -> Path:
    """Create the EC2 key pair and store its private key locally with mode 0400.

    An existing key pair is reused when its private key file is present.

    Args:
        aws: AWS region configuration.
        cluster: Key pair name.
        workspace: Work dir receiving ``<key name>.pem``.

    Returns:
        Path to the private key file.

    Raises:
        RuntimeError: If the key pair exists remotely but its private key is
            not available locally, or if creation fails.
    """
    console.print(Panel.fit("Creating EC2 SSH key pair", style="bold blue"))
    path = key_file(cluster, workspace)
    name = cluster.ssh_key_name

    if key_pair_exists(aws, cluster):
        if path.exists():
            console.print(f"[yellow]   Key pair '{name}' already exists, reusing {path}[/yellow]")
            return path
        raise RuntimeError(
            f"Key pair '{name}' exists in {aws.aws_region} but {path} is missing; "
            "the private key cannot be recovered, delete the key pair or set SSH_KEY_NAME"
        )

    # AWS hands out the private key once
    try:
        workspace.bootstrap_work_dir.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise RuntimeError(f"Cannot prepare work dir {workspace.bootstrap_work_dir}: {err}") from err

    if path.exists():
        console.print(f"[yellow]   Removing stale key file {path}[/yellow]")
        path.unlink()

    try:
        material = str(sh.aws(
            "ec2", "create-key-pair",
            "--key-name", name,
            "--region", aws.aws_region,
            "--query", "KeyMaterial",
            "--output", "text",
        ))
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to create key pair '{name}': {error_text(err)}") from err

    try:
        _write_private_key(path, material)
    except OSError as err:
        outcome = "deleted" if _discard_key_pair(aws, name) else "left in place, delete it manually"
        raise RuntimeError(
            f"Failed to save private key for '{name}' to {path}: {err}; the key pair was {outcome}"
        ) from err
    console.print(f"[green]\u2705 Key pair '{name}' created, private key at {path}[/green]")
    return path


def _discard_key_pair(aws: AwsConfig, name: str) -> bool:
    """Delete a key pair whose private key could not be saved."""
    try:
        sh.aws("ec2", "delete-key-pair", "--key-name", name, "--region", aws.aws_region)
    except sh.ErrorReturnCode as err:
        logger.warning("Failed to delete key pair '%s' after a failed save: %s", name, error_text(err))
        return False
    return True


def delete_key_pair(aws: AwsConfig, cluster: ClusterConfig) -> bool:
    """Delete the EC2 key pair.

    Returns:
        True if the key pair was deleted, False if it did not exist.
    """
    name = cluster.ssh_key_name
    console.print(f"[yellow]\u2139\ufe0f  Deleting EC2 key pair '{name}'...[/yellow]")
    if not key_pair_exists(aws, cluster):
        console.print(f"[yellow]\u26a0\ufe0f  Key pair '{name}' not found or already deleted[/yellow]")
        return False
    try:
        sh.aws("ec2", "delete-key-pair", "--key-name", name, "--region", aws.aws_region)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to delete key pair '{name}': {error_text(err)}") from err
    console.print(f"[green]\u2705 Key pair '{name}' deleted[/green]")
    return True


# ============================================================================
# Cluster operations
# ============================================================================

def cluster_exists(aws: AwsConfig, cluster: ClusterConfig) -> bool:
    """Check whether the EKS cluster exists.

    Raises:
        RuntimeError: On any failure other than the cluster being absent.
    """
    try:
        sh.eksctl(
            "get", "cluster",
            "--name", cluster.eks_cluster_name,
            "--region", aws.aws_region,
            "-o", "json",
        )
    except sh.ErrorReturnCode as err:
        message = error_text(err)
        if is_not_found(message):
            return False
        raise RuntimeError(f"Failed to look up cluster '{cluster.eks_cluster_name}': {message}") from err
    return True


def create_cluster(aws: AwsConfig, cluster: ClusterConfig) -> None:
    """Create the EKS cluster with a managed node group.

    Blocks until eksctl reports the control plane and node group ready. An
    existing cluster with the same name is left untouched.

    Args:
        aws: AWS region configuration.
        cluster: Cluster name, node group shape, and SSH key pair.

    Raises:
        RuntimeError: If eksctl fails (quota, permissions, ...).
    """
    console.print(Panel.fit("Creating EKS cluster", style="bold blue"))
    name = cluster.eks_cluster_name
    if cluster_exists(aws, cluster):
        console.print(f"[yellow]   Cluster '{name}' already exists, skipping creation[/yellow]")
        return

    args = [
        "create", "cluster",
        "--name", name,
        "--region", aws.aws_region,
        "--nodes", str(cluster.eks_node_count),
        "--node-type", cluster.eks_node_type,
    ]
    if cluster.eks_with_oidc:
        args.append("--with-oidc")
    args += [
        "--ssh-access",
        "--ssh-public-key", cluster.ssh_key_name,
        "--managed",
    ]

    console.print("[yellow]\u2139\ufe0f  Running eksctl (this usually takes 15-20 minutes)...[/yellow]")
    try:
        sh.eksctl(*args, _out=log_line, _err=log_line)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to create cluster '{name}': {error_text(err)}") from err
    console.print(f"[green]\u2705 Cluster '{name}' created[/green]")


def update_kubeconfig(aws: AwsConfig, cluster: ClusterConfig) -> None:
    """Merge the cluster's connection info into the local kubeconfig."""
    console.print(Panel.fit("Configuring kubeconfig", style="bold blue"))
    try:
        sh.aws("eks", "update-kubeconfig", "--region", aws.aws_region, "--name", cluster.eks_cluster_name)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to update kubeconfig: {error_text(err)}") from err
    console.print(f"[green]  \u2713 kubeconfig now points at '{cluster.eks_cluster_name}'[/green]")


def current_context() -> str | None:
    """Return the kubeconfig's current context, or None when none is set."""
    ok, stdout, _ = run_kubectl(["config", "current-context"])
    context = stdout.strip()
    return context if ok and context else None


def context_targets_cluster(context: str, aws: AwsConfig, cluster: ClusterConfig) -> bool:
    """Check whether a kubeconfig context belongs to the configured cluster.

    Recognises both the cluster ARN written by ``aws eks update-kubeconfig``
    and the ``<user>@<name>.<region>.eksctl.io`` form written by eksctl.
    """
    name, region = cluster.eks_cluster_name, aws.aws_region
    if context.startswith(f"arn:aws:eks:{region}:") and context.endswith(f":cluster/{name}"):
        return True
    return context.endswith(f"@{name}.{region}.eksctl.io")


def wait_for_nodes(timeout: str = NODES_READY_TIMEOUT) -> None:
    """Wait for all nodes to be ready and print them."""
    console.print("[yellow]\u2139\ufe0f  Waiting for all nodes to be ready...[/yellow]")
    try:
        sh.kubectl("wait", "--for=condition=Ready", "nodes", "--all", f"--timeout={timeout}")
        nodes = sh.kubectl("get", "nodes")
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Nodes did not become ready: {error_text(err)}") from err
    console.print(str(nodes).rstrip())
    console.print("[green]\u2705 All nodes are ready[/green]")


def delete_cluster(aws: AwsConfig, cluster: ClusterConfig) -> bool:
    """Delete the EKS cluster and wait for its resources to be removed.

    Returns:
        True if the cluster was deleted, False if it did not exist.

    Raises:
        RuntimeError: On any failure other than the cluster being absent.
    """
    name = cluster.eks_cluster_name
    console.print(f"[yellow]\u2139\ufe0f  Deleting EKS cluster '{name}'...[/yellow]")
    if not cluster_exists(aws, cluster):
        console.print(f"[yellow]\u26a0\ufe0f  Cluster '{name}' not found or already deleted[/yellow]")
        return False
    try:
        sh.eksctl(
            "delete", "cluster",
            "--name", name,
            "--region", aws.aws_region,
            "--wait",
            _out=log_line, _err=log_line,
        )
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to delete cluster '{name}': {error_text(err)}") from err
    console.print(f"[green]\u2705 Cluster '{name}' deleted[/green]")
    return True
