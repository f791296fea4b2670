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

"""Argo CD UI port-forward subcommands (start, stop, status)."""

from __future__ import annotations

from pathlib import Path

import typer

from eks_bootstrap import console
from eks_bootstrap.config import resolve_settings
from eks_bootstrap.tunnel import read_tunnel_state, start_port_forward, stop_port_forward, tunnel_is_alive

app = typer.Typer(help="Manage the Argo CD UI port-forward.")


@app.command()
def start(
    namespace: str | None = typer.Option(None, "--namespace", help="Argo CD namespace"),
    local_port: int | None = typer.Option(None, "--port", help="Local port"),
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory holding the state dir"),
) -> None:
    """Start the port-forward in the background."""
    settings = resolve_settings(namespace=namespace, local_port=local_port, work_dir=work_dir)
    start_port_forward(settings.argocd, settings.workspace)


@app.command()
def stop(
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory holding the state dir"),
) -> None:
    """Stop the recorded port-forward."""
    settings = resolve_settings(work_dir=work_dir)
    stop_port_forward(settings.workspace)


@app.command()
def status(
    work_dir: Path | None = typer.Option(None, "--work-dir", help="Directory holding the state dir"),
) -> None:
    """Show whether the recorded port-forward is running."""
    settings = resolve_settings(work_dir=work_dir)
    state = read_tunnel_state(settings.workspace)
    if state is None:
        console.print("[yellow]No port-forward recorded[/yellow]")
        raise typer.Exit(code=1)
    if not tunnel_is_alive(state):
        console.print(f"[yellow]Port-forward pid {state.pid} is no longer running[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]Port-forward running (pid {state.pid}) at {state.url}[/green]")
