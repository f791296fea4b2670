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

"""Unit tests for the supervised Argo CD port-forward."""

import json
import os
import signal
from unittest.mock import MagicMock, patch

import psutil
import pytest

from eks_bootstrap.tunnel import (
    TunnelState,
    read_tunnel_state,
    start_port_forward,
    stop_port_forward,
    tunnel_is_alive,
)

MODULE = "eks_bootstrap.tunnel"
STARTED_AT = 1760000000.25
FORWARD_CMDLINE = ["kubectl", "port-forward", "svc/argocd-server", "-n", "argocd", "8080:443"]


def make_state(pid: int = 4242, create_time: float = STARTED_AT) -> TunnelState:
    return TunnelState(
        pid=pid, create_time=create_time, local_port=8080, namespace="argocd", service="argocd-server"
    )


def write_state(tmp_path, pid: int = 4242, create_time: float = STARTED_AT) -> None:
    directory = tmp_path / ".eks-bootstrap"
    directory.mkdir(exist_ok=True)
    (directory / "port-forward.json").write_text(json.dumps({
        "pid": pid,
        "create_time": create_time,
        "local_port": 8080,
        "namespace": "argocd",
        "service": "argocd-server",
    }))


def forward_process(
    create_time: float = STARTED_AT, cmdline=None, status: str = psutil.STATUS_SLEEPING
) -> MagicMock:
    """A psutil.Process stand-in for a running port-forward."""
    proc = MagicMock()
    proc.status.return_value = status
    proc.create_time.return_value = create_time
    proc.cmdline.return_value = FORWARD_CMDLINE if cmdline is None else cmdline
    return proc


class TestState:
    """Tests for the recorded tunnel state."""

    def test_no_state(self, settings) -> None:
        assert read_tunnel_state(settings.workspace) is None

    def test_round_trip(self, settings, tmp_path) -> None:
        write_state(tmp_path)

        state = read_tunnel_state(settings.workspace)

        assert state == make_state()
        assert state.url == "https://localhost:8080"

    def test_unreadable_state(self, settings, tmp_path) -> None:
        directory = tmp_path / ".eks-bootstrap"
        directory.mkdir()
        (directory / "port-forward.json").write_text("{not json")

        assert read_tunnel_state(settings.workspace) is None

    def test_record_without_start_time_is_ignored(self, settings, tmp_path) -> None:
        directory = tmp_path / ".eks-bootstrap"
        directory.mkdir()
        (directory / "port-forward.json").write_text(
            json.dumps({"pid": 4242, "local_port": 8080, "namespace": "argocd", "service": "argocd-server"})
        )

        assert read_tunnel_state(settings.workspace) is None


class TestLiveness:
    """Tests for matching a record against the live process."""

    @patch(f"{MODULE}.psutil.Process")
    def test_matching_process(self, mock_process: MagicMock) -> None:
        mock_process.return_value = forward_process()

        assert tunnel_is_alive(make_state())
        mock_process.assert_called_once_with(4242)

    @patch(f"{MODULE}.psutil.Process", side_effect=psutil.NoSuchProcess(4242))
    def test_gone(self, _mock_process: MagicMock) -> None:
        assert not tunnel_is_alive(make_state())

    @patch(f"{MODULE}.psutil.Process")
    def test_reused_pid(self, mock_process: MagicMock) -> None:
        mock_process.return_value = forward_process(create_time=STARTED_AT + 3600, cmdline=["sleep", "60"])

        assert not tunnel_is_alive(make_state())

    @patch(f"{MODULE}.psutil.Process")
    def test_same_start_time_other_command(self, mock_process: MagicMock) -> None:
        mock_process.return_value = forward_process(cmdline=["sleep", "60"])

        assert not tunnel_is_alive(make_state())

    @patch(f"{MODULE}.psutil.Process")
    def test_zombie(self, mock_process: MagicMock) -> None:
        mock_process.return_value = forward_process(status=psutil.STATUS_ZOMBIE)

        assert not tunnel_is_alive(make_state())

    @patch(f"{MODULE}.psutil.Process", side_effect=psutil.AccessDenied(4242))
    def test_foreign_owner(self, _mock_process: MagicMock) -> None:
        assert not tunnel_is_alive(make_state())

    def test_unrelated_live_process(self) -> None:
        """Test a live process that is not a port-forward is never accepted."""
        own = psutil.Process(os.getpid())

        assert not tunnel_is_alive(make_state(pid=own.pid, create_time=own.create_time()))


class TestStart:
    """Tests for starting the port-forward."""

    @patch(f"{MODULE}.psutil.Process")
    @patch(f"{MODULE}.time.sleep")
    @patch(f"{MODULE}.subprocess.Popen")
    def test_starts_detached_and_records(
        self, mock_popen: MagicMock, _sleep: MagicMock, mock_process: MagicMock, settings, tmp_path
    ) -> None:
        mock_popen.return_value = MagicMock(pid=4242, poll=MagicMock(return_value=None))
        mock_process.return_value = forward_process()

        state = start_port_forward(settings.argocd, settings.workspace)

        assert state == make_state()
        cmd = mock_popen.call_args[0][0]
        assert cmd == FORWARD_CMDLINE
        assert mock_popen.call_args[1]["start_new_session"] is True
        recorded = json.loads((tmp_path / ".eks-bootstrap" / "port-forward.json").read_text())
        assert recorded["pid"] == 4242
        assert recorded["create_time"] == STARTED_AT
        assert recorded["local_port"] == 8080

    @patch(f"{MODULE}.subprocess.Popen")
    @patch(f"{MODULE}.psutil.Process")
    def test_reuses_live_tunnel(self, mock_process: MagicMock, mock_popen: MagicMock, settings, tmp_path) -> None:
        write_state(tmp_path)
        mock_process.return_value = forward_process()

        state = start_port_forward(settings.argocd, settings.workspace)

        assert state == make_state()
        mock_popen.assert_not_called()

    @patch(f"{MODULE}.time.sleep")
    @patch(f"{MODULE}.subprocess.Popen")
    def test_unrelated_process_is_not_reused(
        self, mock_popen: MagicMock, _sleep: MagicMock, settings, tmp_path
    ) -> None:
        """Test a record whose pid now belongs to another process starts a new forward."""
        own = psutil.Process(os.getpid())
        write_state(tmp_path, pid=own.pid, create_time=own.create_time())
        child = MagicMock(pid=own.pid, poll=MagicMock(return_value=None))
        mock_popen.return_value = child

        with patch(f"{MODULE}.os.killpg") as mock_killpg:
            state = start_port_forward(settings.argocd, settings.workspace)

        mock_popen.assert_called_once()
        mock_killpg.assert_not_called()
        assert state.create_time == own.create_time()

    @patch(f"{MODULE}.time.sleep")
    @patch(f"{MODULE}.subprocess.Popen")
    def test_exit_during_startup(self, mock_popen: MagicMock, _sleep: MagicMock, settings, tmp_path) -> None:
        def _popen(cmd, stdout, **kwargs):
            stdout.write(b"Unable to listen on port 8080: address already in use\n")
            return MagicMock(pid=4242, returncode=1, poll=MagicMock(return_value=1))

        mock_popen.side_effect = _popen

        with pytest.raises(RuntimeError, match="address already in use"):
            start_port_forward(settings.argocd, settings.workspace)
        assert not (tmp_path / ".eks-bootstrap" / "port-forward.json").exists()

    @patch(f"{MODULE}.subprocess.Popen", side_effect=FileNotFoundError("kubectl"))
    def test_kubectl_missing(self, _mock_popen: MagicMock, settings) -> None:
        with pytest.raises(RuntimeError, match="Failed to start port-forward"):
            start_port_forward(settings.argocd, settings.workspace)


class TestStop:
    """Tests for stopping the port-forward."""

    @patch(f"{MODULE}.os.killpg")
    @patch(f"{MODULE}.psutil.Process")
    def test_stops_reaps_and_forgets(self, mock_process: MagicMock, mock_killpg: MagicMock, settings, tmp_path) -> None:
        write_state(tmp_path)
        proc = forward_process()
        mock_process.return_value = proc

        assert stop_port_forward(settings.workspace)

        mock_killpg.assert_called_once_with(4242, signal.SIGTERM)
        proc.wait.assert_called_once()
        assert read_tunnel_state(settings.workspace) is None

    @patch(f"{MODULE}.os.killpg")
    @patch(f"{MODULE}.psutil.Process")
    def test_kills_after_timeout(self, mock_process: MagicMock, _killpg: MagicMock, settings, tmp_path) -> None:
        write_state(tmp_path)
        proc = forward_process()
        proc.wait.side_effect = [psutil.TimeoutExpired(5.0, 4242), 0]
        mock_process.return_value = proc

        assert stop_port_forward(settings.workspace)
        proc.kill.assert_called_once()

    @patch(f"{MODULE}.os.killpg")
    def test_unrelated_process_is_not_signalled(self, mock_killpg: MagicMock, settings, tmp_path) -> None:
        own = psutil.Process(os.getpid())
        write_state(tmp_path, pid=own.pid, create_time=own.create_time())

        assert not stop_port_forward(settings.workspace)

        mock_killpg.assert_not_called()
        assert read_tunnel_state(settings.workspace) is None

    @patch(f"{MODULE}.os.killpg", side_effect=ProcessLookupError)
    @patch(f"{MODULE}.psutil.Process")
    def test_exits_before_signal(self, mock_process: MagicMock, _killpg: MagicMock, settings, tmp_path) -> None:
        write_state(tmp_path)
        mock_process.return_value = forward_process()

        assert not stop_port_forward(settings.workspace)
        assert read_tunnel_state(settings.workspace) is None

    @patch(f"{MODULE}.os.killpg")
    def test_nothing_recorded(self, mock_killpg: MagicMock, settings) -> None:
        assert not stop_port_forward(settings.workspace)
        mock_killpg.assert_not_called()
