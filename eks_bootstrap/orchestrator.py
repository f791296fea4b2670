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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

import stat
from collections.abc import Callable, Iterable

import sh
from rich.panel import Panel
from rich.table import Table

from eks_bootstrap import console, logger
from eks_bootstrap.argocd import (
    delete_namespace,
    install_argocd,
    namespace_exists,
    set_admin_password,
    wait_for_server,
)
from eks_bootstrap.cluster import (
    cluster_exists,
    context_targets_cluster,
    create_cluster,
    create_key_pair,
    current_context,
    delete_cluster,
    delete_key_pair,
    key_pair_exists,
    update_kubeconfig,
    wait_for_nodes,
)
from eks_bootstrap.config import (
    AwsConfig,
    BootstrapSettings,
    SetupOptions,
    TeardownOptions,
    image_uri,
    key_file,
    source_path,
)
from eks_bootstrap.constants import REQUIRED_COMMANDS
from eks_bootstrap.deploy import apply_manifests
from eks_bootstrap.image import build_and_push
from eks_bootstrap.registry import (
    create_repository,
    delete_images,
    delete_repository,
    list_image_tags,
    repository_exists,
)
from eks_bootstrap.tunnel import read_tunnel_state, start_port_forward, stop_port_forward, tunnel_is_alive
from eks_bootstrap.utils import error_text, require_command
from eks_bootstrap.workspace import clone_source, remove_key_file, remove_source


# ============================================================================
# Internal helpers
# ============================================================================

def check_prerequisites(tools: Iterable[str] = REQUIRED_COMMANDS) -> None:
    """Check that every external CLI the workflow shells out to is installed.

    Raises:
        RuntimeError: If any command is missing.
    """
    console.print(Panel.fit("Checking prerequisites", style="bold blue"))
    for cmd in tools:
        require_command(cmd)
    console.print("[green]\u2705 All required tools are available[/green]")


def resolve_account(aws: AwsConfig) -> AwsConfig:
    """Fill in the AWS account id from the caller identity when it is not configured.

    Raises:
        RuntimeError: If STS cannot be queried.
    """
    if aws.aws_account_id:
        return aws
    try:
        account = str(sh.aws(
            "sts", "get-caller-identity",
            "--query", "Account",
            "--output", "text",
            "--region", aws.aws_region,
        )).strip()
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to resolve AWS account id: {error_text(err)}") from err
    logger.info("Resolved AWS account id %s from caller identity", account)
    return AwsConfig(aws_region=aws.aws_region, aws_account_id=account)


def _run_step(name: str, fn: Callable[[], object], failures: list[str]) -> None:
    """Run one teardown step, recording instead of raising on failure."""
    try:
        fn()
    except Exception as e:
        logger.error("Teardown step '%s' failed: %s", name, e)
        console.print(f"[red]\u274c {name}: {e}[/red]")
        failures.append(name)


# ============================================================================
# Public API
# ============================================================================

def run_setup(settings: BootstrapSettings, options: SetupOptions | None = None) -> None:
    """Run the setup workflow: ECR + image + key pair + EKS + Argo CD + tunnel + app.

    Steps run strictly in order; the first failure aborts the workflow.
    Every step tolerates resources left over from a previous run.

    Args:
        settings: Resolved configuration.
        options: Steps to skip, or None to run everything.

    Raises:
        RuntimeError: If any step fails.
    """
    if options is None:
        options = SetupOptions()

    tools = [cmd for cmd in REQUIRED_COMMANDS
             if not (cmd == "eksctl" and options.skip_cluster)]
    check_prerequisites(tools)

    aws = settings.aws
    needs_account = not options.skip_image or not options.skip_app
    if needs_account:
        aws = resolve_account(aws)

    if not options.skip_registry:
        create_repository(aws, settings.registry)

    pushed_image: str | None = None
    checkout = source_path(settings.workspace)
    if not options.skip_image or not options.skip_app:
        checkout = clone_source(settings.workspace)
    if not options.skip_image:
        pushed_image = build_and_push(aws, settings.registry, checkout)

    if not options.skip_cluster:
        create_key_pair(aws, settings.cluster, settings.workspace)
        create_cluster(aws, settings.cluster)
        update_kubeconfig(aws, settings.cluster)
        wait_for_nodes()

    if not options.skip_argocd:
        install_argocd(settings.argocd)
        wait_for_server(settings.argocd)

    tunnel = None
    if not options.skip_tunnel:
        tunnel = start_port_forward(settings.argocd, settings.workspace)

    if not options.skip_argocd:
        set_admin_password(settings.argocd)

    if not options.skip_app:
        apply_manifests(checkout, settings.registry, pushed_image or image_uri(aws, settings.registry))

    if tunnel is not None:
        console.print(Panel.fit(f"Setup complete. Visit {tunnel.url} for the Argo CD UI.", style="bold green"))
    else:
        console.print(Panel.fit("Setup complete.", style="bold green"))

    if options.teardown_after:
        run_teardown(settings)


def run_teardown(settings: BootstrapSettings, options: TeardownOptions | None = None) -> None:
    """Remove everything setup created, in reverse dependency order.

    Each step runs even if earlier ones fail; resources that are already
    gone are reported and skipped.

    Args:
        settings: Resolved configuration.
        options: Teardown options, or None for defaults.

    Raises:
        RuntimeError: Listing every step that failed.
    """
    if options is None:
        options = TeardownOptions()

    console.print(Panel.fit("Starting cleanup process", style="bold blue"))
    aws, registry, cluster = settings.aws, settings.registry, settings.cluster
    argocd, workspace = settings.argocd, settings.workspace
    failures: list[str] = []

    _run_step("stop port-forward", lambda: stop_port_forward(workspace), failures)

    def _delete_argocd() -> None:
        # namespace deletion needs the cluster; skip when it is already gone
        if cluster_exists(aws, cluster):
            update_kubeconfig(aws, cluster)
            delete_namespace(argocd)
        else:
            console.print(f"[yellow]\u26a0\ufe0f  Cluster '{cluster.eks_cluster_name}' not found, "
                          f"skipping namespace '{argocd.argocd_namespace}'[/yellow]")

    _run_step("delete Argo CD namespace", _delete_argocd, failures)
    _run_step("delete EKS cluster", lambda: delete_cluster(aws, cluster), failures)
    _run_step("delete EC2 key pair", lambda: delete_key_pair(aws, cluster), failures)
    _run_step("delete ECR images", lambda: delete_images(aws, registry), failures)
    _run_step("delete ECR repository", lambda: delete_repository(aws, registry), failures)

    if not options.keep_local:
        console.print("[yellow]\u2139\ufe0f  Cleaning up local environment...[/yellow]")
        _run_step("remove key file", lambda: remove_key_file(cluster, workspace), failures)
        _run_step("remove source checkout", lambda: remove_source(workspace), failures)

    if failures:
        raise RuntimeError(f"Cleanup finished with {len(failures)} failed step(s): {', '.join(failures)}")
    console.print(Panel.fit("Cleanup process completed successfully", style="bold green"))


def collect_status(settings: BootstrapSettings) -> dict[str, str]:
    """Report which of the managed resources currently exist.

    Lookups that fail are reported as ``error: ...`` rather than raised.

    Returns:
        Mapping of resource label to a short human-readable state.
    """
    aws, registry, cluster = settings.aws, settings.registry, settings.cluster
    argocd, workspace = settings.argocd, settings.workspace
    status: dict[str, str] = {}

    def _report(label: str, fn: Callable[[], str]) -> None:
        try:
            status[label] = fn()
        except Exception as e:
            status[label] = f"error: {e}"

    def _repository() -> str:
        if not repository_exists(aws, registry):
            return "absent"
        tags = list_image_tags(aws, registry)
        return f"present (tags: {', '.join(tags) or 'none'})"

    def _key_file() -> str:
        path = key_file(cluster, workspace)
        if not path.exists():
            return "absent"
        return f"present (mode {stat.S_IMODE(path.stat().st_mode):04o})"

    def _cluster() -> str:
        return "present" if cluster_exists(aws, cluster) else "absent"

    cluster_label = f"EKS cluster '{cluster.eks_cluster_name}'"

    def _namespace() -> str:
        # kubectl talks to the current context, which may be another cluster
        if status.get(cluster_label) != "present":
            return "skipped (cluster not present)"
        context = current_context()
        if context is None:
            return "unknown (no current kube context)"
        if not context_targets_cluster(context, aws, cluster):
            return f"unknown (current context is {context})"
        return "present" if namespace_exists(argocd) else "absent"

    def _tunnel() -> str:
        state = read_tunnel_state(workspace)
        if state is None:
            return "absent"
        alive = "running" if tunnel_is_alive(state) else "stale"
        return f"{alive} (pid {state.pid}, {state.url})"

    _report(f"ECR repository '{registry.ecr_repo_name}'", _repository)
    _report(f"EC2 key pair '{cluster.ssh_key_name}'",
            lambda: "present" if key_pair_exists(aws, cluster) else "absent")
    _report("Private key file", _key_file)
    _report(cluster_label, _cluster)
    _report(f"Namespace '{argocd.argocd_namespace}'", _namespace)
    _report("Argo CD port-forward", _tunnel)
    _report("Source checkout", lambda: "present" if source_path(workspace).exists() else "absent")
    return status


def display_status(status: dict[str, str]) -> None:
    table = Table(title="eks-bootstrap resources")
    table.add_column("Resource", style="cyan")
    table.add_column("State")
    for label, state in status.items():
        style = "green" if state.startswith(("present", "running")) else "yellow"
        if state.startswith("error"):
            style = "red"
        table.add_row(label, f"[{style}]{state}[/{style}]")
    console.print(table)
