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

"""Install subcommands (argocd, app)."""

from __future__ import annotations

from pathlib import Path

import typer

from eks_bootstrap.argocd import install_argocd, set_admin_password, wait_for_server
from eks_bootstrap.config import image_uri, resolve_settings, source_path
from eks_bootstrap.deploy import apply_manifests
from eks_bootstrap.orchestrator import resolve_account

app = typer.Typer(help="Install components.")


@app.command()
def argocd(
    namespace: str | None = typer.Option(None, "--namespace", help="Argo CD namespace"),
    skip_password: bool = typer.Option(False, "--skip-password", help="Leave the initial admin secret alone"),
) -> None:
    """Install Argo CD and set its initial admin password."""
    settings = resolve_settings(namespace=namespace)
    install_argocd(settings.argocd)
    wait_for_server(settings.argocd)
    if not skip_password:
        set_admin_password(settings.argocd)


@app.command("app")
def app_manifests(
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory holding the source checkout"),
    repo_name: str | None = typer.Option(None, "--repo-name", help="ECR repository name"),
    region: str | None = typer.Option(None, "--region", help="AWS region"),
    account_id: str | None = typer.Option(None, "--account-id", help="AWS account id (default: from sts)"),
    verbatim: bool = typer.Option(False, "--verbatim", help="Apply manifests without image substitution"),
) -> None:
    """Apply the application's deployment and service manifests."""
    settings = resolve_settings(work_dir=work_dir, repo_name=repo_name, region=region, account_id=account_id)
    image = None
    if not verbatim:
        image = image_uri(resolve_account(settings.aws), settings.registry)
    apply_manifests(source_path(settings.workspace), settings.registry, image)
