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

"""Supervised ``kubectl port-forward`` to the Argo CD UI.

The forward runs detached in its own session so it outlives the CLI
invocation. Its pid and start time are recorded in the workspace state dir,
which lets a later ``tunnel stop`` or ``teardown`` find and terminate it.
A recorded pid is only trusted while the live process still has the same
start time and is still a port-forward to the recorded service.
"""

from __future__ import annotations

import json
import os
import signal
import subprocess
import time
from dataclasses import asdict, dataclass
from pathlib import Path

import psutil
from rich.panel import Panel

from eks_bootstrap import console, logger
from eks_bootstrap.config import ArgoCDConfig, WorkspaceConfig, state_dir
from eks_bootstrap.constants import (
    ARGOCD_SERVER_PORT,
    ARGOCD_SERVER_SERVICE,
    TUNNEL_CREATE_TIME_TOLERANCE_SECONDS,
    TUNNEL_LOG_FILE,
    TUNNEL_LOG_TAIL_CHARS,
    TUNNEL_STARTUP_GRACE_SECONDS,
    TUNNEL_STATE_FILE,
    TUNNEL_STOP_TIMEOUT_SECONDS,
)
from eks_bootstrap.workspace import ensure_state_dir


@dataclass(frozen=True)
class TunnelState:
    """Recorded port-forward process.

    Attributes:
        pid: Process id (and process group id) of the kubectl process.
        create_time: Process start time as reported by psutil.
        local_port: Local port the forward listens on.
        namespace: Namespace of the forwarded service.
        service: Forwarded service name.
    """

    pid: int
    create_time: float
    local_port: int
    namespace: str
    service: str

    @property
    def url(self) -> str:
        return f"https://localhost:{self.local_port}"


def _state_file(workspace: WorkspaceConfig) -> Path:
    return state_dir(workspace) / TUNNEL_STATE_FILE


def _log_tail(path: Path) -> str:
    if not path.exists():
        return ""
    return path.read_text(errors="replace")[-TUNNEL_LOG_TAIL_CHARS:].strip()


def read_tunnel_state(workspace: WorkspaceConfig) -> TunnelState | None:
    """Load the recorded tunnel, or None if none is recorded or the record is unreadable."""
    path = _state_file(workspace)
    if not path.exists():
        return None
    try:
        return TunnelState(**json.loads(path.read_text()))
    except (ValueError, TypeError) as exc:
        logger.warning("Ignoring unreadable tunnel state %s: %s", path, exc)
        return None


def _tunnel_process(state: TunnelState) -> psutil.Process | None:
    """Return the live process behind *state*, or None if it is gone or is not our port-forward.

    A pid can be reused after kubectl exits or the machine reboots, so the
    process must match the recorded start time and still be a port-forward
    of the recorded service.
    """
    try:
        proc = psutil.Process(state.pid)
        if proc.status() == psutil.STATUS_ZOMBIE:
            return None
        if abs(proc.create_time() - state.create_time) > TUNNEL_CREATE_TIME_TOLERANCE_SECONDS:
            logger.debug("pid %d was started at a different time, not our port-forward", state.pid)
            return None
        cmdline = proc.cmdline()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None
    if "port-forward" not in cmdline or f"svc/{state.service}" not in cmdline:
        logger.debug("pid %d is not a port-forward to %s: %s", state.pid, state.service, cmdline)
        return None
    return proc


def tunnel_is_alive(state: TunnelState) -> bool:
    """Whether the recorded port-forward is still running."""
    return _tunnel_process(state) is not None


def start_port_forward(argocd: ArgoCDConfig, workspace: WorkspaceConfig) -> TunnelState:
    """Start a detached port-forward from localhost to the Argo CD server.

    A live tunnel that is already recorded is reused. A stale record is
    replaced without signalling the process that now owns its pid.

    Args:
        argocd: Namespace and local port.
        workspace: Work dir holding the state dir.

    Returns:
        The recorded tunnel.

    Raises:
        RuntimeError: If kubectl cannot be started or exits during startup.
    """
    console.print(Panel.fit("Exposing Argo CD server", style="bold blue"))
    existing = read_tunnel_state(workspace)
    if existing is not None:
        if tunnel_is_alive(existing):
            console.print(f"[yellow]   Port-forward already running (pid {existing.pid}) at {existing.url}[/yellow]")
            return existing
        console.print(f"[yellow]   Dropping stale port-forward record (pid {existing.pid})[/yellow]")
        _state_file(workspace).unlink(missing_ok=True)

    directory = ensure_state_dir(workspace)
    log_path = directory / TUNNEL_LOG_FILE
    cmd = [
        "kubectl", "port-forward",
        f"svc/{ARGOCD_SERVER_SERVICE}",
        "-n", argocd.argocd_namespace,
        f"{argocd.argocd_local_port}:{ARGOCD_SERVER_PORT}",
    ]
    with open(log_path, "wb") as log:
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            raise RuntimeError(f"Failed to start port-forward: {exc}") from exc

    time.sleep(TUNNEL_STARTUP_GRACE_SECONDS)
    if proc.poll() is not None:
        raise RuntimeError(
            f"Port-forward exited with code {proc.returncode}: {_log_tail(log_path)}"
        )
    try:
        create_time = psutil.Process(proc.pid).create_time()
    except psutil.NoSuchProcess as exc:
        raise RuntimeError(f"Port-forward exited during startup: {_log_tail(log_path)}") from exc

    state = TunnelState(
        pid=proc.pid,
        create_time=create_time,
        local_port=argocd.argocd_local_port,
        namespace=argocd.argocd_namespace,
        service=ARGOCD_SERVER_SERVICE,
    )
    _state_file(workspace).write_text(json.dumps(asdict(state), indent=2))
    console.print(f"[green]\u2705 Port-forward running (pid {state.pid}) at {state.url}[/green]")
    return state


def stop_port_forward(workspace: WorkspaceConfig) -> bool:
    """Terminate the recorded port-forward and forget it.

    Only a process that still matches the record is signalled. It is waited
    for afterwards, which also reaps it when it is a child of this process.

    Returns:
        True if a running process was stopped, False if nothing was running.
    """
    console.print("[yellow]\u2139\ufe0f  Stopping Argo CD port-forward...[/yellow]")
    state = read_tunnel_state(workspace)
    if state is None:
        console.print("[yellow]\u26a0\ufe0f  No port-forward recorded[/yellow]")
        return False

    stopped = False
    try:
        proc = _tunnel_process(state)
        if proc is None:
            console.print(f"[yellow]\u26a0\ufe0f  Port-forward (pid {state.pid}) was not running[/yellow]")
        else:
            os.killpg(state.pid, signal.SIGTERM)
            try:
                proc.wait(timeout=TUNNEL_STOP_TIMEOUT_SECONDS)
            except psutil.TimeoutExpired:
                logger.warning("Port-forward pid %d did not exit after SIGTERM, killing it", state.pid)
                proc.kill()
                proc.wait(timeout=TUNNEL_STOP_TIMEOUT_SECONDS)
            stopped = True
    except (ProcessLookupError, psutil.NoSuchProcess):
        console.print(f"[yellow]\u26a0\ufe0f  Port-forward (pid {state.pid}) was not running[/yellow]")
    finally:
        _state_file(workspace).unlink(missing_ok=True)

    if stopped:
        console.print(f"[green]\u2705 Port-forward (pid {state.pid}) stopped[/green]")
    return stopped
