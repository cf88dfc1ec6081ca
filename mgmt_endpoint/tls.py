from __future__ import annotations

"""TLS utilities for the management endpoint.

Purpose: Build server and client SSL contexts either from resolved
`EncryptionOptions` or, for the legacy switch, from process properties.
Errors from the TLS stack (unreadable keystore, unsupported cipher) propagate
unchanged.
"""

import logging
import os
import ssl
from typing import MutableMapping, Optional, Sequence

from .config import ConfigurationError, as_bool
from .encryption import (
    EncryptionOptions,
    is_tls13_suite,
    usable_below_tls13,
    validate_cipher_suites,
    validate_protocols,
)
from . import properties as props


logger = logging.getLogger("mgmt.tls")


_TLS_VERSIONS = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
    "TLSv1.2": ssl.TLSVersion.TLSv1_2,
    "TLSv1.3": ssl.TLSVersion.TLSv1_3,
}


def _require_file(path: str, what: str) -> None:
    if not os.path.exists(path):
        raise FileNotFoundError(f"{what} not found: {path}")


def apply_accepted(ctx: ssl.SSLContext, protocols: Sequence[str], cipher_suites: Sequence[str]) -> None:
    """Restrict a context to the given protocol window and pre-1.3 suites.

    Empty sequences leave the platform defaults in place.
    """
    if protocols:
        validate_protocols(tuple(protocols))
        versions = sorted(_TLS_VERSIONS[p] for p in protocols)
        ctx.minimum_version = versions[0]
        ctx.maximum_version = versions[-1]
    validate_cipher_suites(cipher_suites)
    # TLS 1.3 suites cannot be narrowed through set_ciphers
    legacy_suites = [s for s in cipher_suites if not is_tls13_suite(s)]
    if legacy_suites:
        ctx.set_ciphers(":".join(legacy_suites))


def build_server_ssl_context(options: EncryptionOptions) -> ssl.SSLContext:
    if not options.keystore:
        raise ConfigurationError("TLS enabled but keystore not provided")
    _require_file(options.keystore, "keystore")
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ctx.load_cert_chain(certfile=options.keystore, password=options.keystore_password or None)
    if options.require_client_auth:
        if not options.truststore:
            raise ConfigurationError("require_client_auth needs a truststore")
        _require_file(options.truststore, "truststore")
        ctx.load_verify_locations(cafile=options.truststore)
        ctx.verify_mode = ssl.CERT_REQUIRED
    apply_accepted(ctx, options.accepted_protocols, options.cipher_suites)
    return ctx


def build_client_ssl_context(options: EncryptionOptions) -> ssl.SSLContext:
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    if options.truststore:
        _require_file(options.truststore, "truststore")
        ctx.load_verify_locations(cafile=options.truststore)
    else:
        ctx.load_default_certs()
    if options.require_client_auth and options.keystore:
        _require_file(options.keystore, "keystore")
        ctx.load_cert_chain(certfile=options.keystore, password=options.keystore_password or None)
    apply_accepted(ctx, options.accepted_protocols, options.cipher_suites)
    return ctx


def build_server_ssl_context_from_properties(environ: Optional[MutableMapping[str, str]] = None) -> ssl.SSLContext:
    """Native construction for the legacy switch, driven by process properties."""
    env = os.environ if environ is None else environ
    keystore = env.get(props.SSL_KEYSTORE)
    if not keystore:
        raise ConfigurationError(f"{props.REMOTE_SSL} is set but {props.SSL_KEYSTORE} is not")
    options = EncryptionOptions(
        enabled=True,
        keystore=keystore,
        keystore_password=env.get(props.SSL_KEYSTORE_PASSWORD),
        truststore=env.get(props.SSL_TRUSTSTORE),
        accepted_protocols=props.split_property(env.get(props.REMOTE_SSL_ENABLED_PROTOCOLS)),
        cipher_suites=props.split_property(env.get(props.REMOTE_SSL_ENABLED_CIPHER_SUITES)),
        require_client_auth=as_bool(env.get(props.REMOTE_SSL_NEED_CLIENT_AUTH), False),
    )
    if not usable_below_tls13(options.accepted_protocols, options.cipher_suites):
        logger.warning(
            "%s lists only TLS 1.3 suites; TLS 1.2 connections use the platform cipher list",
            props.REMOTE_SSL_ENABLED_CIPHER_SUITES,
        )
    return build_server_ssl_context(options)


def build_client_ssl_context_from_properties(environ: Optional[MutableMapping[str, str]] = None) -> ssl.SSLContext:
    """Client context self-configured from the published client properties."""
    env = os.environ if environ is None else environ
    client = props.ClientTlsSettings.from_environ(env)
    options = EncryptionOptions(
        enabled=True,
        keystore=env.get(props.SSL_KEYSTORE),
        keystore_password=env.get(props.SSL_KEYSTORE_PASSWORD),
        truststore=env.get(props.SSL_TRUSTSTORE),
        accepted_protocols=client.protocols,
        cipher_suites=client.cipher_suites,
        require_client_auth=as_bool(env.get(props.REMOTE_SSL_NEED_CLIENT_AUTH), False),
    )
    return build_client_ssl_context(options)
