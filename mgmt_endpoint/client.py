from __future__ import annotations

"""Same-process client for the management endpoint.

Purpose: Dial back into the management listener with a client socket factory
(explicit, or self-configured from the published client TLS properties) and
exchange a single request.
"""

import asyncio
import json
from typing import Any, Dict, MutableMapping, Optional

from websockets.asyncio.client import connect

from .factories import PlainClientSocketFactory, SslClientSocketFactory


def _uri(host: str, port: int, tls: bool) -> str:
    scheme = "wss" if tls else "ws"
    if ":" in host:
        host = f"[{host}]"
    return f"{scheme}://{host}:{port}"


async def request(
    host: str,
    port: int,
    message: Dict[str, Any],
    client_factory: Any = None,
    password: Optional[str] = None,
    tls: bool = False,
    environ: Optional[MutableMapping[str, str]] = None,
    timeout: float = 5.0,
) -> Dict[str, Any]:
    if client_factory is None:
        client_factory = SslClientSocketFactory.from_environ(environ) if tls else PlainClientSocketFactory()

    kwargs: Dict[str, Any] = {}
    if client_factory.tls:
        kwargs["ssl"] = client_factory.ssl_context
        if client_factory.server_hostname:
            kwargs["server_hostname"] = client_factory.server_hostname

    async with connect(_uri(host, port, client_factory.tls), open_timeout=timeout, **kwargs) as ws:
        handshake: Dict[str, Any] = {"type": "handshake"}
        if password:
            handshake["password"] = password
        await ws.send(json.dumps(handshake, separators=(",", ":")))
        reply = json.loads(await asyncio.wait_for(ws.recv(), timeout=timeout))
        if reply.get("type") != "handshake_ok":
            raise ConnectionError(f"unexpected handshake reply: {reply!r}")
        await ws.send(json.dumps(message, separators=(",", ":")))
        return json.loads(await asyncio.wait_for(ws.recv(), timeout=timeout))
