"""
Remote capability probe.

Fetching a single commit by id only works when the server advertises that
it accepts unadvertised object ids in ``want`` lines. The probe reads the
server's reference advertisement (pkt-line encoded) and reports its
capabilities so the resolver can choose between an exact fetch and the
fetch-all-branches fallback.

Smart HTTP remotes are queried with requests, git:// remotes over a TCP
connection to the git daemon, ssh remotes by running ``git-upload-pack``
through ssh, and local paths and file:// URLs with
``git upload-pack --advertise-refs``. Other schemes report no capabilities,
which selects the fallback.
"""

import logging
import re
import shlex
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional
from urllib.parse import unquote, urlparse

import requests

from distrobuilder.backends.command import CommandRunner
from distrobuilder.backends.process import Executor, run
from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import CommandCancelledError, CommandError, TransportError

logger = logging.getLogger(__name__)

UPLOAD_PACK_SERVICE = "git-upload-pack"

# Capabilities allowing a client to want a commit no ref points at
EXACT_SHA_CAPABILITIES = frozenset(
    {"allow-reachable-sha1-in-want", "allow-any-sha1-in-want"}
)

DEFAULT_HTTP_TIMEOUT = 60.0

GIT_DAEMON_PORT = 9418

# [user@]host:path, the scp-like ssh syntax
SCP_LIKE_URL = re.compile(r"^(?:(?P<user>[^@/:]+)@)?(?P<host>[^/:]+):(?P<path>.+)$")


@dataclass
class Advertisement:
    """Refs and capabilities announced by an upload-pack server."""

    refs: Dict[str, str] = field(default_factory=dict)
    capabilities: FrozenSet[str] = frozenset()


def parse_pkt_lines(data: bytes) -> List[Optional[bytes]]:
    """
    Split pkt-line framed data into payloads.

    Each packet starts with a 4-digit hex length that includes the length
    field itself. ``0000`` (flush) and the other special packets are
    returned as None.

    Raises:
        TransportError: If the framing is malformed
    """
    packets: List[Optional[bytes]] = []
    position = 0
    while position < len(data):
        header = data[position : position + 4]
        try:
            length = int(header, 16)
        except ValueError as e:
            raise TransportError(f"Malformed pkt-line length {header!r}") from e

        if length < 4:
            packets.append(None)
            position += 4
            continue
        if position + length > len(data):
            raise TransportError("Truncated pkt-line in reference advertisement")
        packets.append(data[position + 4 : position + length])
        position += length
    return packets


def encode_pkt_line(payload: bytes) -> bytes:
    """Frame a payload as one pkt-line."""
    return f"{len(payload) + 4:04x}".encode("ascii") + payload


def read_advertisement_packets(connection: socket.socket) -> bytes:
    """
    Read pkt-lines from a socket up to and including the first flush packet.

    Raises:
        TransportError: If the connection closes early or framing is malformed
    """

    def receive(count: int) -> bytes:
        data = b""
        while len(data) < count:
            chunk = connection.recv(count - len(data))
            if not chunk:
                raise TransportError("Connection closed during reference advertisement")
            data += chunk
        return data

    received = b""
    while True:
        header = receive(4)
        try:
            length = int(header, 16)
        except ValueError as e:
            raise TransportError(f"Malformed pkt-line length {header!r}") from e
        received += header
        if length == 0:
            return received
        if length < 4:
            continue
        received += receive(length - 4)


def parse_advertisement(data: bytes) -> Advertisement:
    """
    Parse a protocol v0/v1 reference advertisement.

    The smart HTTP ``# service=`` preamble and ``version 1`` line are
    skipped. Capabilities follow a NUL byte on the first ref line.

    Example:
        >>> parse_advertisement(b"003c" + b"a" * 40 + b" HEAD\\0side-band\\n0000").capabilities
        frozenset({'side-band'})
    """
    capabilities: FrozenSet[str] = frozenset()
    refs: Dict[str, str] = {}

    for packet in parse_pkt_lines(data):
        if packet is None:
            continue
        line = packet.rstrip(b"\n")
        if line.startswith(b"# service=") or line.startswith(b"version "):
            continue

        ref_part, nul, capability_part = line.partition(b"\0")
        if nul:
            capabilities = frozenset(capability_part.decode("utf-8", "replace").split())
        oid, _, name = ref_part.decode("utf-8", "replace").partition(" ")
        if name:
            refs[name] = oid

    return Advertisement(refs=refs, capabilities=capabilities)


class RemoteCapabilityProbe:
    """
    Query a remote's upload-pack capabilities.

    Args:
        session: requests session for HTTP remotes
        executor: Process executor for local and ssh remotes
        cancellation: Token checked before each query; its deadline bounds
            the HTTP and git daemon timeouts
        timeout: Network timeout in seconds
        git: git executable used for local remotes
        ssh: ssh executable used for ssh remotes
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        executor: Optional[Executor] = None,
        cancellation: Optional[CancellationToken] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        git: str = "git",
        ssh: str = "ssh",
    ):
        self.session = session or requests.Session()
        self.executor = executor
        self.cancellation = cancellation
        self.timeout = timeout
        self.git = git
        self.ssh = ssh

    def advertisement(self, url: str) -> Advertisement:
        """
        Fetch the reference advertisement of a remote.

        Raises:
            TransportError: If the remote cannot be queried
        """
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled(f"capability probe of {url}")

        if "://" not in url:
            scp = SCP_LIKE_URL.match(url)
            if scp:
                return self._ssh_advertisement(
                    scp.group("host"), scp.group("path"), user=scp.group("user")
                )
            return self._local_advertisement(Path(url))

        parsed = urlparse(url)
        if parsed.scheme in ("http", "https"):
            return self._http_advertisement(url)
        if parsed.scheme == "file":
            return self._local_advertisement(Path(unquote(parsed.path)))
        if parsed.scheme == "git":
            return self._daemon_advertisement(
                parsed.hostname, parsed.port or GIT_DAEMON_PORT, unquote(parsed.path)
            )
        if parsed.scheme in ("ssh", "git+ssh", "ssh+git"):
            return self._ssh_advertisement(
                parsed.hostname,
                unquote(parsed.path),
                user=parsed.username,
                port=parsed.port,
            )

        logger.debug(f"Cannot probe capabilities over {parsed.scheme}: {url}")
        return Advertisement()

    def capabilities(self, url: str) -> FrozenSet[str]:
        return self.advertisement(url).capabilities

    def supports_exact_sha_fetch(self, url: str) -> bool:
        """Whether the remote accepts wants for commits no ref points at."""
        supported = bool(self.capabilities(url) & EXACT_SHA_CAPABILITIES)
        logger.debug(f"Exact commit fetch supported by {url}: {supported}")
        return supported

    def _network_timeout(self) -> float:
        remaining = self.cancellation.remaining() if self.cancellation else None
        if remaining is None:
            return self.timeout
        return min(self.timeout, max(remaining, 0.001))

    def _http_advertisement(self, url: str) -> Advertisement:
        endpoint = f"{url.rstrip('/')}/info/refs"
        try:
            response = self.session.get(
                endpoint,
                params={"service": UPLOAD_PACK_SERVICE},
                timeout=self._network_timeout(),
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f"Failed to query {endpoint}: {e}") from e

        content_type = response.headers.get("Content-Type", "")
        if content_type != f"application/x-{UPLOAD_PACK_SERVICE}-advertisement":
            # Dumb HTTP servers serve a plain ref list without capabilities
            logger.debug(f"{url} is not a smart HTTP remote ({content_type})")
            return Advertisement()
        return parse_advertisement(response.content)

    def _local_advertisement(self, path: Path) -> Advertisement:
        runner = CommandRunner(
            self.git, ["upload-pack", "--advertise-refs", str(path)]
        )
        try:
            result = run(runner, executor=self.executor, cancellation=self.cancellation)
        except CommandCancelledError:
            raise
        except CommandError as e:
            raise TransportError(f"Failed to query {path}: {e}") from e
        return parse_advertisement(result.stdout.encode("utf-8"))

    def _daemon_advertisement(self, host: str, port: int, path: str) -> Advertisement:
        """Read the advertisement from a git daemon (git:// protocol)."""
        request = encode_pkt_line(
            f"{UPLOAD_PACK_SERVICE} {path}\0host={host}\0".encode("utf-8")
        )
        logger.debug(f"Querying git daemon {host}:{port} for {path}")
        try:
            with socket.create_connection(
                (host, port), timeout=self._network_timeout()
            ) as connection:
                connection.sendall(request)
                data = read_advertisement_packets(connection)
                # An empty want list ends the session
                connection.sendall(b"0000")
        except OSError as e:
            raise TransportError(f"Failed to query git://{host}:{port}{path}: {e}") from e
        return parse_advertisement(data)

    def _ssh_advertisement(
        self,
        host: str,
        path: str,
        user: Optional[str] = None,
        port: Optional[int] = None,
    ) -> Advertisement:
        """Run git-upload-pack on an ssh remote and read its advertisement."""
        arguments: List[str] = ["-o", "BatchMode=yes"]
        if port is not None:
            arguments.extend(["-p", str(port)])
        destination = f"{user}@{host}" if user else host
        arguments.extend([destination, f"{UPLOAD_PACK_SERVICE} {shlex.quote(path)}"])

        # The flush packet sent on stdin ends the session after the advertisement
        runner = CommandRunner(self.ssh, arguments, stdin="0000")
        try:
            result = run(runner, executor=self.executor, cancellation=self.cancellation)
        except CommandCancelledError:
            raise
        except CommandError as e:
            raise TransportError(f"Failed to query {destination}:{path}: {e}") from e
        return parse_advertisement(result.stdout.encode("utf-8"))
