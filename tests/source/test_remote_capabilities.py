"""
Tests for the remote capability probe.
"""

import socket
import socketserver
import subprocess
import threading
import time

import pytest
import requests
import responses

from distrobuilder.backends.base import CommandResult
from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import CommandCancelledError, TransportError
from distrobuilder.source.remote import (
    RemoteCapabilityProbe,
    parse_advertisement,
    parse_pkt_lines,
)

OID = "a" * 40
URL = "https://git.example.com/project.git"
INFO_REFS = f"{URL}/info/refs"
SMART_CONTENT_TYPE = "application/x-git-upload-pack-advertisement"


def pkt(payload: bytes) -> bytes:
    return f"{len(payload) + 4:04x}".encode() + payload


def advertisement(*capabilities: str) -> bytes:
    first = f"{OID} HEAD\0{' '.join(capabilities)}\n".encode()
    return (
        pkt(b"# service=git-upload-pack\n")
        + b"0000"
        + pkt(first)
        + pkt(f"{OID} refs/heads/main\n".encode())
        + b"0000"
    )


class TestPktLines:
    """Tests for pkt-line parsing."""

    def test_flush_packets(self):
        """Test flush packets are returned as None."""
        assert parse_pkt_lines(pkt(b"abc") + b"0000") == [b"abc", None]

    def test_malformed_length(self):
        """Test non-hex lengths raise TransportError."""
        with pytest.raises(TransportError, match="Malformed"):
            parse_pkt_lines(b"zzzzdata")

    def test_truncated(self):
        """Test packets running past the data raise TransportError."""
        with pytest.raises(TransportError, match="Truncated"):
            parse_pkt_lines(b"0010abc")

    def test_advertisement(self):
        """Test refs and capabilities are extracted."""
        parsed = parse_advertisement(advertisement("multi_ack", "allow-tip-sha1-in-want"))

        assert parsed.capabilities == frozenset({"multi_ack", "allow-tip-sha1-in-want"})
        assert parsed.refs == {"HEAD": OID, "refs/heads/main": OID}


class TestHttpProbe:
    """Tests for smart HTTP remotes."""

    @responses.activate
    def test_exact_sha_supported(self):
        """Test allow-reachable-sha1-in-want enables exact fetches."""
        responses.add(
            responses.GET,
            INFO_REFS,
            body=advertisement("multi_ack", "allow-reachable-sha1-in-want"),
            content_type=SMART_CONTENT_TYPE,
        )

        assert RemoteCapabilityProbe().supports_exact_sha_fetch(URL)
        assert "service=git-upload-pack" in responses.calls[0].request.url

    @responses.activate
    def test_exact_sha_not_supported(self):
        """Test servers without the capability select the fallback."""
        responses.add(
            responses.GET,
            INFO_REFS,
            body=advertisement("multi_ack", "side-band-64k"),
            content_type=SMART_CONTENT_TYPE,
        )

        assert not RemoteCapabilityProbe().supports_exact_sha_fetch(URL)

    @responses.activate
    def test_dumb_http(self):
        """Test dumb HTTP servers report no capabilities."""
        responses.add(
            responses.GET, INFO_REFS, body=f"{OID}\trefs/heads/main\n", content_type="text/plain"
        )

        assert RemoteCapabilityProbe().capabilities(URL) == frozenset()

    @responses.activate
    def test_http_error(self):
        """Test HTTP errors raise TransportError."""
        responses.add(responses.GET, INFO_REFS, status=503)

        with pytest.raises(TransportError, match="Failed to query"):
            RemoteCapabilityProbe().capabilities(URL)

    @responses.activate
    def test_connection_error(self):
        """Test connection failures raise TransportError."""
        responses.add(responses.GET, INFO_REFS, body=requests.ConnectionError("refused"))

        with pytest.raises(TransportError):
            RemoteCapabilityProbe().capabilities(URL)

    def test_cancelled(self):
        """Test a cancelled token stops the probe before any request."""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CommandCancelledError):
            RemoteCapabilityProbe(cancellation=token).capabilities(URL)


class FakeGitDaemon(socketserver.BaseRequestHandler):
    """Answer one git:// request with a canned advertisement."""

    def handle(self):
        self.server.received.append(self.request.recv(1024))
        self.request.sendall(self.server.reply)
        if self.server.reply.endswith(b"0000"):
            self.server.received.append(self.request.recv(4))
        self.server.handled.set()


@pytest.fixture
def fake_git_daemon():
    """Serve canned reference advertisements over git:// on a free port."""
    server = socketserver.TCPServer(("127.0.0.1", 0), FakeGitDaemon)
    server.received = []
    server.reply = b""
    server.handled = threading.Event()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


def free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestGitDaemonProtocol:
    """Tests for git:// remotes."""

    def test_exact_sha_supported(self, fake_git_daemon):
        """Test the daemon request is framed and the advertisement parsed."""
        # Daemon advertisements carry no "# service" preamble
        fake_git_daemon.reply = pkt(
            f"{OID} HEAD\0multi_ack allow-reachable-sha1-in-want\n".encode()
        ) + b"0000"
        port = fake_git_daemon.server_address[1]

        remote = RemoteCapabilityProbe()
        assert remote.supports_exact_sha_fetch(f"git://127.0.0.1:{port}/musl")
        assert fake_git_daemon.handled.wait(5)

        request, session_end = fake_git_daemon.received
        assert request == pkt(b"git-upload-pack /musl\0host=127.0.0.1\0")
        assert session_end == b"0000"

    def test_connection_closed_early(self, fake_git_daemon):
        """Test an advertisement without a flush packet raises TransportError."""
        fake_git_daemon.reply = pkt(f"{OID} HEAD\0multi_ack\n".encode())
        port = fake_git_daemon.server_address[1]

        with pytest.raises(TransportError, match="Connection closed"):
            RemoteCapabilityProbe(timeout=5).capabilities(f"git://127.0.0.1:{port}/musl")

    def test_connection_refused(self):
        """Test an unreachable daemon raises TransportError."""
        url = f"git://127.0.0.1:{free_port()}/musl"

        with pytest.raises(TransportError, match="Failed to query git://"):
            RemoteCapabilityProbe(timeout=5).capabilities(url)

    @pytest.mark.integration
    def test_git_daemon(self, local_git_repository):
        """Test a real git daemon advertises allow-reachable-sha1-in-want."""
        local_git_repository.allow_reachable_sha1_in_want()
        port = free_port()
        base = local_git_repository.path.parent
        daemon = subprocess.Popen(
            [
                "git",
                "daemon",
                "--export-all",
                "--reuseaddr",
                "--listen=127.0.0.1",
                f"--port={port}",
                f"--base-path={base}",
                str(base),
            ],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        try:
            deadline = time.monotonic() + 10
            while True:
                try:
                    socket.create_connection(("127.0.0.1", port), timeout=1).close()
                    break
                except OSError:
                    if time.monotonic() > deadline:
                        pytest.fail("git daemon did not start")
                    time.sleep(0.1)

            url = f"git://127.0.0.1:{port}/{local_git_repository.path.name}"
            assert RemoteCapabilityProbe(timeout=10).supports_exact_sha_fetch(url)
        finally:
            daemon.terminate()
            daemon.wait()


class TestSshTransport:
    """Tests for ssh remotes."""

    @staticmethod
    def recording_executor(calls, stdout="", exit_code=0):
        def executor(invocation, token):
            calls.append(invocation)
            return CommandResult(invocation, exit_code, stdout, "")

        return executor

    def test_ssh_url(self):
        """Test ssh:// URLs run git-upload-pack on the remote host."""
        calls = []
        executor = self.recording_executor(
            calls, advertisement("allow-any-sha1-in-want").decode()
        )

        remote = RemoteCapabilityProbe(executor=executor)
        assert remote.supports_exact_sha_fetch("ssh://git@example.com:2222/repo.git")

        assert calls[0].argv == [
            "ssh",
            "-o",
            "BatchMode=yes",
            "-p",
            "2222",
            "git@example.com",
            "git-upload-pack /repo.git",
        ]
        assert calls[0].stdin == "0000"

    def test_scp_like_url(self):
        """Test the user@host:path syntax is treated as ssh."""
        calls = []
        executor = self.recording_executor(calls, advertisement("multi_ack").decode())

        remote = RemoteCapabilityProbe(executor=executor)
        assert not remote.supports_exact_sha_fetch("git@example.com:my repo.git")

        assert calls[0].argv == [
            "ssh",
            "-o",
            "BatchMode=yes",
            "git@example.com",
            "git-upload-pack 'my repo.git'",
        ]

    def test_ssh_failure(self):
        """Test a failing ssh command raises TransportError."""
        executor = self.recording_executor([], exit_code=255)

        with pytest.raises(TransportError, match="git@example.com:repo.git"):
            RemoteCapabilityProbe(executor=executor).capabilities("git@example.com:repo.git")


class TestOtherTransports:
    """Tests for local remotes and unknown schemes."""

    def test_unknown_scheme(self):
        """Test schemes without an upload-pack query report no capabilities."""
        assert RemoteCapabilityProbe().capabilities("ftp://example.com/repo.git") == frozenset()

    def test_local_repository(self, local_git_repository):
        """Test local repositories are probed with upload-pack."""
        probe = RemoteCapabilityProbe()
        assert not probe.supports_exact_sha_fetch(local_git_repository.url)

        local_git_repository.allow_reachable_sha1_in_want()

        assert probe.supports_exact_sha_fetch(local_git_repository.url)
        refs = probe.advertisement(str(local_git_repository.path)).refs
        assert refs["refs/heads/main"] == local_git_repository.commits["third"]

    def test_missing_local_repository(self, temp_dir, git_available):
        """Test a missing local path raises TransportError."""
        with pytest.raises(TransportError):
            RemoteCapabilityProbe().capabilities(str(temp_dir / "absent"))
