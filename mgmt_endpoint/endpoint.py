from __future__ import annotations

"""Socket factory configuration for the management endpoint.

Purpose: Decide whether the management listener uses TLS and build the
environment map the transport consumes.

How: TLS may be requested through the legacy `MGMT_REMOTE_SSL` property or the
structured `encryption_options` block. The two sources are resolved into one
of Disabled, LegacyTls or StructuredTls; when both ask for TLS startup fails
with ConfigurationError instead of one silently winning.

Engineering notes: Runs once during single-threaded startup. The structured
path publishes the client protocol / cipher-suite properties; the legacy path
leaves that to the property-driven construction.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional, Union

from .config import ConfigurationError
from .encryption import EncryptionOptions, resolve_encryption_options
from .factories import (
    PlainClientSocketFactory,
    PlainServerSocketFactory,
    SslClientSocketFactory,
    SslServerSocketFactory,
)
from . import properties as props
from .tls import (
    build_client_ssl_context,
    build_client_ssl_context_from_properties,
    build_server_ssl_context,
    build_server_ssl_context_from_properties,
)


logger = logging.getLogger("mgmt.endpoint")

# Environment map keys understood by the transport
SERVER_SOCKET_FACTORY = "mgmt.remote.server.socket.factory"
CLIENT_SOCKET_FACTORY = "mgmt.remote.client.socket.factory"
# Alias of the client factory used by registry lookups
NAMING_SOCKET_FACTORY = "mgmt.naming.factory.socket"


@dataclass(frozen=True)
class Disabled:
    pass


@dataclass(frozen=True)
class LegacyTls:
    pass


@dataclass(frozen=True)
class StructuredTls:
    options: EncryptionOptions


TlsSource = Union[Disabled, LegacyTls, StructuredTls]


def resolve_tls_source(settings: Any, environ: Optional[MutableMapping[str, str]] = None) -> TlsSource:
    legacy = props.is_legacy_tls_requested(environ)
    options = resolve_encryption_options(settings)
    if legacy and options.enabled:
        raise ConfigurationError(
            f"both the legacy {props.REMOTE_SSL} property and encryption_options are set; "
            "exactly one must be used to configure management endpoint TLS"
        )
    if legacy:
        return LegacyTls()
    if options.enabled:
        return StructuredTls(options)
    return Disabled()


def _legacy_factories(bind_address: str, local_only: bool, environ: Optional[MutableMapping[str, str]]):
    env = props.process_environ(environ)
    # The native path mirrors its own server lists onto the client properties
    mirrored: Dict[str, str] = {}
    protocols = env.get(props.REMOTE_SSL_ENABLED_PROTOCOLS)
    if protocols:
        mirrored[props.CLIENT_ENABLED_PROTOCOLS] = protocols
    suites = env.get(props.REMOTE_SSL_ENABLED_CIPHER_SUITES)
    if suites:
        mirrored[props.CLIENT_ENABLED_CIPHER_SUITES] = suites
    server = SslServerSocketFactory(
        bind_address=bind_address,
        ssl_context=build_server_ssl_context_from_properties(env),
        local_only=local_only,
    )
    client = SslClientSocketFactory(build_client_ssl_context_from_properties({**env, **mirrored}))
    env.update(mirrored)
    logger.info(
        "management endpoint TLS from %s: protocols=%s cipher_suites=%s",
        props.REMOTE_SSL,
        protocols or "<platform default>",
        suites or "<platform default>",
    )
    return server, client


def _structured_factories(bind_address: str, local_only: bool, options: EncryptionOptions):
    if not options.accepted_protocols or not options.cipher_suites:
        raise ConfigurationError("encryption_options resolved without protocols or cipher suites")
    server = SslServerSocketFactory(
        bind_address=bind_address,
        ssl_context=build_server_ssl_context(options),
        local_only=local_only,
    )
    client = SslClientSocketFactory(build_client_ssl_context(options))
    logger.info(
        "management endpoint TLS from encryption_options: protocols=%s cipher_suites=%s client_auth=%s",
        ",".join(options.accepted_protocols),
        ",".join(options.cipher_suites),
        options.require_client_auth,
    )
    return server, client


def configure_socket_factories(
    bind_address: str,
    local_only: bool,
    settings: Any,
    environ: Optional[MutableMapping[str, str]] = None,
) -> Dict[str, Any]:
    source = resolve_tls_source(settings, environ)

    if isinstance(source, LegacyTls):
        server, client = _legacy_factories(bind_address, local_only, environ)
    elif isinstance(source, StructuredTls):
        server, client = _structured_factories(bind_address, local_only, source.options)
    else:
        server = PlainServerSocketFactory(bind_address=bind_address, local_only=local_only)
        client = PlainClientSocketFactory()
        logger.info("management endpoint TLS disabled (local_only=%s)", local_only)

    env: Dict[str, Any] = {
        SERVER_SOCKET_FACTORY: server,
        CLIENT_SOCKET_FACTORY: client,
        NAMING_SOCKET_FACTORY: client,
    }

    if isinstance(source, StructuredTls):
        props.publish_client_tls_properties(
            source.options.accepted_protocols,
            source.options.cipher_suites,
            environ,
        )
    return env
