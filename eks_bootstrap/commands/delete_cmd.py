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

"""Delete subcommands (cluster, repository, namespace, key-pair, local)."""

from __future__ import annotations

from pathlib import Path

import typer

from eks_bootstrap.argocd import delete_namespace
from eks_bootstrap.cluster import delete_cluster, delete_key_pair
from eks_bootstrap.config import resolve_settings
from eks_bootstrap.registry import delete_images, delete_repository
from eks_bootstrap.workspace import remove_key_file, remove_source

app = typer.Typer(help="Delete infrastructure resources.")


@app.command()
def cluster(
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="EKS cluster name"),
    region: str | None = typer.Option(None, "--region", help="AWS region"),
) -> None:
    """Delete the EKS cluster."""
    settings = resolve_settings(cluster_name=cluster_name, region=region)
    delete_cluster(settings.aws, settings.cluster)


@app.command()
def repository(
    repo_name: str | None = typer.Option(None, "--repo-name", help="ECR repository name"),
    region: str | None = typer.Option(None, "--region", help="AWS region"),
) -> None:
    """Delete the pushed image and the ECR repository."""
    settings = resolve_settings(repo_name=repo_name, region=region)
    delete_images(settings.aws, settings.registry)
    delete_repository(settings.aws, settings.registry)


@app.command()
def namespace(
    name: str | None = typer.Option(None, "--namespace", help="Argo CD namespace"),
) -> None:
    """Delete the Argo CD namespace from the current kube context."""
    settings = resolve_settings(namespace=name)
    delete_namespace(settings.argocd)


@app.command("key-pair")
def key_pair(
    ssh_key_name: str | None = typer.Option(None, "--ssh-key-name", help="EC2 key pair name"),
    region: str | None = typer.Option(None, "--region", help="AWS region"),
) -> None:
    """Delete the EC2 key pair."""
    settings = resolve_settings(ssh_key_name=ssh_key_name, region=region)
    delete_key_pair(settings.aws, settings.cluster)


@app.command()
def local(
    ssh_key_name: str | None = typer.Option(None, "--ssh-key-name", help="EC2 key pair name"),
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory holding the key file and clone"),
) -> None:
    """Remove the private key file and the source checkout."""
    settings = resolve_settings(ssh_key_name=ssh_key_name, work_dir=work_dir)
    remove_key_file(settings.cluster, settings.workspace)
    remove_source(settings.workspace)
