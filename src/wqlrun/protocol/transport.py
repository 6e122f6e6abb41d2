"""
TLS transport for the one-shot exchange.

A ``Transport`` carries exactly one exchange: connect, write the request,
read until the peer closes, done. There is no persistent
connected client; every exchange starts with ``connect_with_retry``.

Peer certificates are NOT validated. The query servers present self-signed
certificates and the protocol authenticates responses with its own
signature instead, so the TLS layer runs in explicit trust-everyone mode.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..errors import ConfigError, ConnectionClosedEarly, NetworkError, ReadLimitExceeded

DEFAULT_CHUNK_SIZE = 8192

OpenConnection = Callable[..., Awaitable[tuple[asyncio.StreamReader, asyncio.StreamWriter]]]
Sleep = Callable[[float], Awaitable[None]]


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts."""
    host, sep, port_s = address.strip().rpartition(":")
    if not sep or not host or not (port_s.isascii() and port_s.isdecimal()):
        raise ConfigError(f"Invalid server address {address!r}; expected host:port")
    port = int(port_s)
    if not 0 < port < 65536:
        raise ConfigError(f"Invalid port in server address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        # Resolution encodes the host with IDNA; a bad label fails there with UnicodeError.
        host.encode("idna")
    except UnicodeError as e:
        raise ConfigError(f"Invalid host in server address {address!r}: {e}") from e
    return host, port


def insecure_tls_context() -> ssl.SSLContext:
    ctx = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


class Transport:
    """An established connection, good for a single exchange."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, peer: str = ""):
        self.reader = reader
        self.writer = writer
        self.peer = peer
        self.spent = False
        self.closed = False

    async def read(self, n: int) -> bytes:
        return await self.reader.read(n)

    async def write_all(self, data: bytes) -> None:
        self.writer.write(data)
        await self.writer.drain()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            # Peers often drop the TCP connection without a TLS close_notify.
            logging.debug("Ignoring error while closing transport to %s: %s", self.peer, e)


@dataclass
class ReadPolicy:
    """Bounds for ``read_until_close``; None means unbounded."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_bytes: Optional[int] = None
    max_duration: Optional[float] = None  # seconds for the whole read


async def read_until_close(
    transport: Transport,
    policy: Optional[ReadPolicy] = None,
    on_progress: Optional[Callable[[int], None]] = None,
) -> bytes:
    """Collect every byte the peer sends until it closes the connection.

    ``on_progress`` receives the cumulative byte count after each chunk.
    A close before any byte arrives raises ``ConnectionClosedEarly``.
    """
    policy = policy or ReadPolicy()
    loop = asyncio.get_running_loop()
    deadline = None if policy.max_duration is None else loop.time() + policy.max_duration
    buf = bytearray()
    total = 0
    while True:
        try:
            if deadline is None:
                chunk = await transport.read(policy.chunk_size)
            else:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise ReadLimitExceeded(f"max_duration={policy.max_duration}s", total)
                chunk = await asyncio.wait_for(transport.read(policy.chunk_size), remaining)
        except asyncio.TimeoutError:
            raise ReadLimitExceeded(f"max_duration={policy.max_duration}s", total) from None
        except OSError as e:
            raise NetworkError(f"Failed to read response: {e}", e) from e
        if not chunk:
            if total == 0:
                raise ConnectionClosedEarly()
            break
        buf.extend(chunk)
        total += len(chunk)
        if policy.max_bytes is not None and total > policy.max_bytes:
            raise ReadLimitExceeded(f"max_bytes={policy.max_bytes}", total)
        if on_progress is not None:
            on_progress(total)
    logging.info("Received total: %d bytes from %s", total, transport.peer)
    return bytes(buf)


class TlsConnector:
    """
    Opens TLS connections with bounded, linearly spaced retries.

    Args:
        ssl_context: Client context; defaults to ``insecure_tls_context()``
        server_hostname: SNI name sent in the handshake
        max_attempts: Connect+handshake attempts before giving up
        delay: Seconds to wait between attempts
        on_attempt: Called as ``on_attempt(attempt, error_or_None)``
        open_connection: Injectable ``asyncio.open_connection``
        sleep: Injectable ``asyncio.sleep``
    """

    def __init__(
        self,
        ssl_context: Optional[ssl.SSLContext] = None,
        server_hostname: str = "localhost",
        max_attempts: int = 3,
        delay: float = 1.0,
        on_attempt: Optional[Callable[[int, Optional[BaseException]], None]] = None,
        open_connection: OpenConnection = asyncio.open_connection,
        sleep: Sleep = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")
        self.ssl_context = ssl_context if ssl_context is not None else insecure_tls_context()
        self.server_hostname = server_hostname
        self.max_attempts = max_attempts
        self.delay = delay
        self.on_attempt = on_attempt
        self._open_connection = open_connection
        self._sleep = sleep

    async def connect_with_retry(self, address: str) -> Transport:
        host, port = parse_address(address)
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                reader, writer = await self._open_connection(
                    host, port, ssl=self.ssl_context, server_hostname=self.server_hostname
                )
            except OSError as e:
                last_error = e
                logging.warning(
                    "Connect attempt %d/%d to %s failed: %s", attempt, self.max_attempts, address, e
                )
                if self.on_attempt is not None:
                    self.on_attempt(attempt, e)
                if attempt < self.max_attempts:
                    await self._sleep(self.delay)
                continue
            except ValueError as e:
                # Resolver rejected the host name; not transient, so no retry.
                raise NetworkError(f"Failed to connect to {address}: {e}", e) from e
            logging.info("TLS connection established to %s", address)
            if self.on_attempt is not None:
                self.on_attempt(attempt, None)
            return Transport(reader, writer, peer=address)
        raise NetworkError(
            f"Failed to connect to {address} after {self.max_attempts} attempts: {last_error!r}",
            last_error,
        ) from last_error


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "parse_address",
    "insecure_tls_context",
    "Transport",
    "ReadPolicy",
    "read_until_close",
    "TlsConnector",
]
