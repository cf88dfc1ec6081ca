from __future__ import annotations

"""Socket factories for the management endpoint.

Purpose: Provide the server-accept and client-originate capabilities handed to
the transport through the environment map. Each role has a plain and a TLS
variant with the same methods; none of them change after construction, so the
transport may call them from several connections at once.

Server role: bind_address, local_only, ssl_context, tls,
  admits(remote), create_server_socket(port), accept(listener)
Client role: ssl_context, tls, create_socket(host, port, timeout=None)
"""

import logging
import socket
import ssl
from dataclasses import dataclass
from typing import Any, MutableMapping, Optional, Tuple

from .security import decide_accept_connection
from .tls import build_client_ssl_context_from_properties


logger = logging.getLogger("mgmt.factories")


def _listen(bind_address: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in bind_address else socket.AF_INET
    return socket.create_server((bind_address, port), family=family)


def _admit_or_refuse(conn: socket.socket, addr: Any, local_only: bool) -> None:
    accepted, reason = decide_accept_connection(addr, local_only)
    if not accepted:
        conn.close()
        logger.info("rejected management connection from %s: %s", addr, reason)
        raise ConnectionRefusedError(f"connection from {addr} rejected: {reason}")


@dataclass(frozen=True)
class PlainServerSocketFactory:
    bind_address: str
    local_only: bool = False

    ssl_context = None
    tls = False

    def admits(self, remote: Optional[Tuple[Any, ...]]) -> bool:
        return decide_accept_connection(remote, self.local_only)[0]

    def create_server_socket(self, port: int) -> socket.socket:
        return _listen(self.bind_address, port)

    def accept(self, listener: socket.socket) -> Tuple[socket.socket, Any]:
        conn, addr = listener.accept()
        _admit_or_refuse(conn, addr, self.local_only)
        return conn, addr


@dataclass(frozen=True)
class SslServerSocketFactory:
    bind_address: str
    ssl_context: ssl.SSLContext
    local_only: bool = False

    tls = True

    def admits(self, remote: Optional[Tuple[Any, ...]]) -> bool:
        return decide_accept_connection(remote, self.local_only)[0]

    def create_server_socket(self, port: int) -> socket.socket:
        return _listen(self.bind_address, port)

    def accept(self, listener: socket.socket) -> Tuple[ssl.SSLSocket, Any]:
        conn, addr = listener.accept()
        # Admission runs before the handshake
        _admit_or_refuse(conn, addr, self.local_only)
        try:
            return self.ssl_context.wrap_socket(conn, server_side=True), addr
        except Exception:
            conn.close()
            raise


@dataclass(frozen=True)
class PlainClientSocketFactory:
    ssl_context = None
    tls = False

    def create_socket(self, host: str, port: int, timeout: Optional[float] = None) -> socket.socket:
        return socket.create_connection((host, port), timeout=timeout)


@dataclass(frozen=True)
class SslClientSocketFactory:
    ssl_context: ssl.SSLContext
    server_hostname: Optional[str] = None

    tls = True

    @classmethod
    def from_environ(cls, environ: Optional[MutableMapping[str, str]] = None) -> "SslClientSocketFactory":
        return cls(build_client_ssl_context_from_properties(environ))

    def create_socket(self, host: str, port: int, timeout: Optional[float] = None) -> ssl.SSLSocket:
        sock = socket.create_connection((host, port), timeout=timeout)
        try:
            return self.ssl_context.wrap_socket(sock, server_hostname=self.server_hostname or host)
        except Exception:
            sock.close()
            raise
