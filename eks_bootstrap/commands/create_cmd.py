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

"""Create subcommands (repository, key-pair, cluster)."""

from __future__ import annotations

from pathlib import Path

import typer

from eks_bootstrap.cluster import create_cluster, create_key_pair, update_kubeconfig, wait_for_nodes
from eks_bootstrap.config import resolve_settings
from eks_bootstrap.registry import create_repository

app = typer.Typer(help="Create infrastructure resources.")


@app.command()
def repository(
    repo_name: str | None = typer.Option(None, "--repo-name", help="ECR repository name"),
    region: str | None = typer.Option(None, "--region", help="AWS region"),
) -> None:
    """Create the ECR repository."""
    settings = resolve_settings(repo_name=repo_name, region=region)
    create_repository(settings.aws, settings.registry)


@app.command("key-pair")
def key_pair(
    ssh_key_name: str | None = typer.Option(None, "--ssh-key-name", help="EC2 key pair name"),
    region: str | None = typer.Option(None, "--region", help="AWS region"),
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory receiving the .pem file"),
) -> None:
    """Create the EC2 key pair and save its private key."""
    settings = resolve_settings(ssh_key_name=ssh_key_name, region=region, work_dir=work_dir)
    create_key_pair(settings.aws, settings.cluster, settings.workspace)


@app.command()
def cluster(
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="EKS cluster name"),
    region: str | None = typer.Option(None, "--region", help="AWS region"),
    ssh_key_name: str | None = typer.Option(None, "--ssh-key-name", help="EC2 key pair name"),
    node_count: int | None = typer.Option(None, "--nodes", help="Managed node group size"),
    node_type: str | None = typer.Option(None, "--node-type", help="Node instance type"),
) -> None:
    """Create the EKS cluster, merge its kubeconfig, and wait for nodes."""
    settings = resolve_settings(
        cluster_name=cluster_name,
        region=region,
        ssh_key_name=ssh_key_name,
        node_count=node_count,
        node_type=node_type,
    )
    create_cluster(settings.aws, settings.cluster)
    update_kubeconfig(settings.aws, settings.cluster)
    wait_for_nodes()
