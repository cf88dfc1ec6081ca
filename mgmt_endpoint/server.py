from __future__ import annotations

"""Management endpoint server.

Purpose: WebSocket listener for administrative requests, secured by the socket
factories from `endpoint.configure_socket_factories`.

How: The server factory opens the listening socket and supplies the TLS
context; every connection passes the address admission filter, then a
password handshake, then may send `ping` or `status` requests.

Engineering notes: Configuration errors abort startup; there is no fallback
to an unencrypted listener. Structured logging with client addresses; keep
handlers small.

"""

import asyncio
import json
import logging
import signal
from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional

import websockets
from websockets.asyncio.server import ServerConnection, serve

from .config import Settings, configure_logging, load_settings
from .endpoint import SERVER_SOCKET_FACTORY, configure_socket_factories
from .properties import ClientTlsSettings
from .security import decide_handshake


logger = logging.getLogger("mgmt.server")


@dataclass
class Session:
    websocket: ServerConnection
    authenticated: bool = False


class ManagementServer:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        environ: Optional[MutableMapping[str, str]] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.environ = environ
        self.env: Dict[str, Any] = {}
        self.port: Optional[int] = None
        self.sessions: Dict[ServerConnection, Session] = {}
        self.started = asyncio.Event()
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        configure_logging(self.settings.log_level)
        self.env = configure_socket_factories(
            self.settings.host,
            self.settings.local_only,
            self.settings,
            self.environ,
        )
        factory = self.env[SERVER_SOCKET_FACTORY]
        sock = factory.create_server_socket(self.settings.port)
        self.port = sock.getsockname()[1]

        logger.info(
            "listening on %s:%s tls=%s local_only=%s",
            self.settings.host,
            self.port,
            factory.tls,
            factory.local_only,
        )

        async with serve(self._handle_client, sock=sock, ssl=factory.ssl_context):
            self.started.set()
            await self._shutdown_event.wait()

    async def stop(self) -> None:
        self._shutdown_event.set()

    async def _handle_client(self, websocket: ServerConnection) -> None:
        client = f"{websocket.remote_address}"
        factory = self.env[SERVER_SOCKET_FACTORY]
        if not factory.admits(websocket.remote_address):
            logger.info("connection rejected for %s: remote_disabled", client)
            await websocket.close(code=1008, reason="remote_disabled")
            return

        session = Session(websocket=websocket)
        self.sessions[websocket] = session
        logger.info("client connected: %s", client)
        try:
            async for raw in websocket:
                try:
                    msg = json.loads(raw)
                except ValueError:
                    logger.warning("invalid JSON from %s", client)
                    continue
                if not isinstance(msg, dict):
                    logger.warning("non-object message from %s", client)
                    continue

                mtype = msg.get("type")
                if mtype == "handshake":
                    accepted, reason = decide_handshake(msg, self.settings.password)
                    if not accepted:
                        logger.info("handshake rejected for %s: %s", client, reason)
                        await websocket.close(code=1008, reason=reason)
                        return
                    session.authenticated = True
                    await self._send_json(websocket, {"type": "handshake_ok"})
                    continue

                if not session.authenticated:
                    logger.info("request before handshake from %s", client)
                    await websocket.close(code=1008, reason="bad_handshake")
                    return

                if mtype == "ping":
                    await self._send_json(websocket, {"type": "pong", "request_id": msg.get("request_id")})
                elif mtype == "status":
                    await self._send_json(websocket, self._status(msg.get("request_id")))
                else:
                    logger.debug("unhandled message type: %s", mtype)
        except websockets.ConnectionClosedError:
            logger.info("client disconnected: %s", client)
        finally:
            self.sessions.pop(websocket, None)

    def _status(self, request_id: Any) -> dict:
        factory = self.env[SERVER_SOCKET_FACTORY]
        client_tls = ClientTlsSettings.from_environ(self.environ) if factory.tls else ClientTlsSettings()
        return {
            "type": "status",
            "request_id": request_id,
            "tls": factory.tls,
            "local_only": factory.local_only,
            "protocols": list(client_tls.protocols),
            "cipher_suites": list(client_tls.cipher_suites),
        }

    async def _send_json(self, websocket: ServerConnection, obj: dict) -> None:
        await websocket.send(json.dumps(obj, separators=(",", ":")))


def main() -> None:
    server = ManagementServer()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _signal_handler() -> None:
        logger.info("shutdown requested")
        loop.create_task(server.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Signals not supported on some platforms (e.g., Windows)
            pass

    try:
        loop.run_until_complete(server.start())
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()


if __name__ == "__main__":
    main()
