from __future__ import annotations

"""Process-wide TLS properties for the management endpoint.

Purpose: Read the legacy "enable SSL for the management endpoint" switch and
publish the negotiated protocol / cipher-suite lists so that clients dialing
back into this process use compatible settings.

Process properties live in the process environment. Every function takes an
optional `environ` mapping and falls back to `os.environ` only at this
boundary; callers inside the process pass `ClientTlsSettings` around instead.
"""

import logging
import os
from dataclasses import dataclass
from typing import MutableMapping, Optional, Sequence, Tuple

from .config import as_bool


logger = logging.getLogger("mgmt.properties")

# Legacy switch and the native (property-driven) TLS settings that go with it
REMOTE_SSL = "MGMT_REMOTE_SSL"
REMOTE_SSL_NEED_CLIENT_AUTH = "MGMT_REMOTE_SSL_NEED_CLIENT_AUTH"
REMOTE_SSL_ENABLED_PROTOCOLS = "MGMT_REMOTE_SSL_ENABLED_PROTOCOLS"
REMOTE_SSL_ENABLED_CIPHER_SUITES = "MGMT_REMOTE_SSL_ENABLED_CIPHER_SUITES"
SSL_KEYSTORE = "MGMT_SSL_KEYSTORE"
SSL_KEYSTORE_PASSWORD = "MGMT_SSL_KEYSTORE_PASSWORD"
SSL_TRUSTSTORE = "MGMT_SSL_TRUSTSTORE"

# Read by the client side when it self-configures
CLIENT_ENABLED_PROTOCOLS = "MGMT_SSL_CLIENT_ENABLED_PROTOCOLS"
CLIENT_ENABLED_CIPHER_SUITES = "MGMT_SSL_CLIENT_ENABLED_CIPHER_SUITES"


def process_environ(environ: Optional[MutableMapping[str, str]]) -> MutableMapping[str, str]:
    return os.environ if environ is None else environ


def split_property(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def is_legacy_tls_requested(environ: Optional[MutableMapping[str, str]] = None) -> bool:
    return as_bool(process_environ(environ).get(REMOTE_SSL), False)


@dataclass(frozen=True)
class ClientTlsSettings:
    """Protocols and cipher suites a same-process client should offer.

    Empty tuples mean "platform defaults".
    """

    protocols: Tuple[str, ...] = ()
    cipher_suites: Tuple[str, ...] = ()

    @classmethod
    def from_environ(cls, environ: Optional[MutableMapping[str, str]] = None) -> "ClientTlsSettings":
        env = process_environ(environ)
        return cls(
            protocols=split_property(env.get(CLIENT_ENABLED_PROTOCOLS)),
            cipher_suites=split_property(env.get(CLIENT_ENABLED_CIPHER_SUITES)),
        )


def publish_client_tls_properties(
    protocols: Sequence[str],
    cipher_suites: Sequence[str],
    environ: Optional[MutableMapping[str, str]] = None,
) -> ClientTlsSettings:
    """Write both lists comma-joined, in order, overwriting previous values."""
    env = process_environ(environ)
    env[CLIENT_ENABLED_PROTOCOLS] = ",".join(protocols)
    env[CLIENT_ENABLED_CIPHER_SUITES] = ",".join(cipher_suites)
    logger.debug("published client TLS protocols=%s", env[CLIENT_ENABLED_PROTOCOLS])
    return ClientTlsSettings(protocols=tuple(protocols), cipher_suites=tuple(cipher_suites))
