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

"""Composite setup subcommands (all, show-config)."""

from __future__ import annotations

from pathlib import Path

import typer

from eks_bootstrap.config import SetupOptions, display_settings, resolve_settings
from eks_bootstrap.orchestrator import run_setup

app = typer.Typer(help="Composite setup workflows.")


@app.command("all")
def all_steps(
    skip_registry: bool = typer.Option(
        False, "--skip-registry", help="Skip ECR repository creation"),
    skip_image: bool = typer.Option(
        False, "--skip-image", help="Skip clone, docker build, and push"),
    skip_cluster: bool = typer.Option(
        False, "--skip-cluster", help="Skip key pair, EKS cluster, and kubeconfig"),
    skip_argocd: bool = typer.Option(
        False, "--skip-argocd", help="Skip Argo CD install and admin password"),
    skip_tunnel: bool = typer.Option(
        False, "--skip-tunnel", help="Skip the Argo CD UI port-forward"),
    skip_app: bool = typer.Option(
        False, "--skip-app", help="Skip applying the application manifests"),
    teardown: bool = typer.Option(
        False, "--teardown", help="Tear everything down again once setup completes"),
    region: str | None = typer.Option(
        None, "--region", help="AWS region (overrides AWS_REGION)"),
    account_id: str | None = typer.Option(
        None, "--account-id", help="AWS account id (default: from sts)"),
    repo_name: str | None = typer.Option(
        None, "--repo-name", help="ECR repository name"),
    cluster_name: str | None = typer.Option(
        None, "--cluster-name", help="EKS cluster name"),
    ssh_key_name: str | None = typer.Option(
        None, "--ssh-key-name", help="EC2 key pair name"),
    node_count: int | None = typer.Option(
        None, "--nodes", help="Managed node group size"),
    node_type: str | None = typer.Option(
        None, "--node-type", help="Node instance type"),
    namespace: str | None = typer.Option(
        None, "--namespace", help="Argo CD namespace"),
    local_port: int | None = typer.Option(
        None, "--port", help="Local port for the Argo CD UI"),
    work_dir: Path | None = typer.Option(
        None, "--work-dir", help="Directory for the key file, clone, and state"),
) -> None:
    """Full setup: ECR + image + EKS + Argo CD + tunnel + application.

    Use --skip-* flags to opt out of individual steps.
    """
    settings = resolve_settings(
        region=region,
        account_id=account_id,
        repo_name=repo_name,
        cluster_name=cluster_name,
        ssh_key_name=ssh_key_name,
        node_count=node_count,
        node_type=node_type,
        namespace=namespace,
        local_port=local_port,
        work_dir=work_dir,
    )
    display_settings(settings)
    options = SetupOptions(
        skip_registry=skip_registry,
        skip_image=skip_image,
        skip_cluster=skip_cluster,
        skip_argocd=skip_argocd,
        skip_tunnel=skip_tunnel,
        skip_app=skip_app,
        teardown_after=teardown,
    )
    run_setup(settings, options)


@app.command("show-config")
def show_config() -> None:
    """Print the configuration resolved from the environment."""
    display_settings(resolve_settings())
