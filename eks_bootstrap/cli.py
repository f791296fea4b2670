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

"""
cli.py - Unified CLI for the ECR + EKS + Argo CD demo environment.

Subcommands:
    setup      Composite workflows (all, show-config)
    create     Create infrastructure resources (repository, key-pair, cluster)
    install    Install components (argocd, app)
    tunnel     Manage the Argo CD UI port-forward (start, stop, status)
    delete     Delete individual resources (cluster, repository, namespace, key-pair, local)
    teardown   Remove everything setup created
    status     Show which managed resources exist

Examples:
    # Full setup with defaults (region us-east-1, cluster demo-cluster)
    eks-bootstrap setup all

    # Everything except the cluster, against an existing kube context
    eks-bootstrap setup all --skip-cluster

    # Reopen the Argo CD UI tunnel
    eks-bootstrap tunnel start

    # Tear down, keeping the key file and clone
    eks-bootstrap teardown --keep-local

For detailed usage information, run: eks-bootstrap --help
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import typer
from pydantic import ValidationError

from eks_bootstrap import __version__, console
from eks_bootstrap.commands import (
    create_cmd,
    delete_cmd,
    install_cmd,
    setup_cmd,
    tunnel_cmd,
)
from eks_bootstrap.config import TeardownOptions, resolve_settings
from eks_bootstrap.orchestrator import collect_status, display_status, run_teardown

app = typer.Typer(
    help="Provision and tear down an ECR + EKS + Argo CD demo environment.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"eks-bootstrap {__version__}")
        raise typer.Exit()


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(setup_cmd.app, name="setup")
app.add_typer(create_cmd.app, name="create")
app.add_typer(install_cmd.app, name="install")
app.add_typer(tunnel_cmd.app, name="tunnel")
app.add_typer(delete_cmd.app, name="delete")


@app.command()
def teardown(
    keep_local: bool = typer.Option(False, "--keep-local", help="Keep the key file and source checkout"),
    region: str | None = typer.Option(None, "--region", help="AWS region"),
    repo_name: str | None = typer.Option(None, "--repo-name", help="ECR repository name"),
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="EKS cluster name"),
    ssh_key_name: str | None = typer.Option(None, "--ssh-key-name", help="EC2 key pair name"),
    namespace: str | None = typer.Option(None, "--namespace", help="Argo CD namespace"),
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory for the key file, clone, and state"),
) -> None:
    """Delete the cluster, registry, namespace, key pair, tunnel, and local files."""
    settings = resolve_settings(
        region=region,
        repo_name=repo_name,
        cluster_name=cluster_name,
        ssh_key_name=ssh_key_name,
        namespace=namespace,
        work_dir=work_dir,
    )
    run_teardown(settings, TeardownOptions(keep_local=keep_local))


@app.command()
def status(
    region: str | None = typer.Option(None, "--region", help="AWS region"),
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="EKS cluster name"),
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory for the key file, clone, and state"),
) -> None:
    """Show which managed resources currently exist."""
    settings = resolve_settings(region=region, cluster_name=cluster_name, work_dir=work_dir)
    display_status(collect_status(settings))


def main() -> None:
    """Console-script entry point."""
    try:
        app()
    except ValidationError as e:
        console.print(f"[red]\u274c Invalid configuration:[/red]\n{e}")
        sys.exit(2)
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
