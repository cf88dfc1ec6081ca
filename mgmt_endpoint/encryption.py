from __future__ import annotations

"""Structured encryption options for the management endpoint.

Purpose: Turn the raw `encryption_options` block of the settings into a single
validated, immutable `EncryptionOptions`.

Contract:
- resolve_encryption_options(settings) -> EncryptionOptions
  Pure read + validate. Raises ConfigurationError when the block is enabled
  but incomplete or malformed.
- An enabled result never carries an empty protocol or cipher-suite list:
  absent lists are expanded to platform defaults, explicitly empty lists are
  rejected.
"""

import ssl
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

from .config import ConfigurationError, as_bool


# Ordered from oldest to newest; accepted protocols must form a contiguous run.
KNOWN_PROTOCOLS: Tuple[str, ...] = ("TLSv1", "TLSv1.1", "TLSv1.2", "TLSv1.3")

DEFAULT_PROTOCOLS: Tuple[str, ...] = ("TLSv1.2", "TLSv1.3")


@dataclass(frozen=True)
class EncryptionOptions:
    enabled: bool = False
    keystore: Optional[str] = None
    keystore_password: Optional[str] = None
    truststore: Optional[str] = None
    # PEM truststores carry no password; kept so existing config blocks load.
    truststore_password: Optional[str] = None
    accepted_protocols: Tuple[str, ...] = ()
    cipher_suites: Tuple[str, ...] = ()
    require_client_auth: bool = False


TLS13_SUITES = frozenset({
    "TLS_AES_128_GCM_SHA256",
    "TLS_AES_256_GCM_SHA384",
    "TLS_CHACHA20_POLY1305_SHA256",
    "TLS_AES_128_CCM_SHA256",
    "TLS_AES_128_CCM_8_SHA256",
})

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


def is_tls13_suite(name: str) -> bool:
    """TLS 1.3 suites are not set via set_ciphers."""
    return name in TLS13_SUITES


def validate_cipher_suites(cipher_suites: Sequence[str]) -> None:
    """Reject IANA-style TLS 1.2 names; set_ciphers only understands OpenSSL names."""
    iana = [s for s in cipher_suites if s.startswith("TLS_") and not is_tls13_suite(s)]
    if iana:
        raise ConfigurationError(
            "cipher suite(s) must use OpenSSL names (e.g. ECDHE-RSA-AES128-GCM-SHA256): " + ", ".join(iana)
        )


def usable_below_tls13(protocols: Sequence[str], cipher_suites: Sequence[str]) -> bool:
    """False when a pre-1.3 protocol is accepted but every suite is TLS 1.3 only.

    Empty protocols mean platform defaults, which include TLS 1.2.
    """
    if protocols and all(p == "TLSv1.3" for p in protocols):
        return True
    return not cipher_suites or any(not is_tls13_suite(s) for s in cipher_suites)


def default_cipher_suites() -> Tuple[str, ...]:
    """Return the platform default cipher suite names in platform order."""
    ctx = ssl.create_default_context()
    return tuple(c["name"] for c in ctx.get_ciphers())


def _string_list(block: Mapping[str, Any], key: str) -> Optional[Tuple[str, ...]]:
    if key not in block or block[key] is None:
        return None
    value = block[key]
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"encryption_options.{key} must be a list of strings")
    if not value:
        raise ConfigurationError(f"encryption_options.{key} must not be empty when set")
    out = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ConfigurationError(f"encryption_options.{key} contains an invalid entry: {item!r}")
        out.append(item.strip())
    return tuple(out)


def _optional_str(block: Mapping[str, Any], key: str) -> Optional[str]:
    value = block.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"encryption_options.{key} must be a string")
    return value


def validate_protocols(protocols: Tuple[str, ...]) -> None:
    unknown = [p for p in protocols if p not in KNOWN_PROTOCOLS]
    if unknown:
        raise ConfigurationError(f"unsupported TLS protocol(s): {', '.join(unknown)}")
    indexes = sorted({KNOWN_PROTOCOLS.index(p) for p in protocols})
    if indexes[-1] - indexes[0] + 1 != len(indexes):
        raise ConfigurationError(
            "accepted_protocols must be a contiguous range of TLS versions: " + ", ".join(protocols)
        )


def parse_enabled(value: Any) -> bool:
    """Strict switch parsing; an unrecognised value must not turn TLS off."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_WORDS:
            return True
        if text in _FALSE_WORDS:
            return False
    raise ConfigurationError(f"encryption_options.enabled has unrecognised value {value!r}")


def resolve_encryption_options(settings: Any) -> EncryptionOptions:
    block = getattr(settings, "encryption_options", None) or {}
    if not isinstance(block, Mapping):
        raise ConfigurationError("encryption_options must be an object")

    # A disabled block is not inspected further
    if not parse_enabled(block.get("enabled")):
        return EncryptionOptions(enabled=False)

    keystore = _optional_str(block, "keystore")
    keystore_password = _optional_str(block, "keystore_password")
    truststore = _optional_str(block, "truststore")
    truststore_password = _optional_str(block, "truststore_password")
    require_client_auth = as_bool(block.get("require_client_auth"), False)
    protocols = _string_list(block, "accepted_protocols")
    suites = _string_list(block, "cipher_suites")

    if not keystore or not keystore.strip():
        raise ConfigurationError("encryption_options enabled but keystore not provided")
    if not truststore or not truststore.strip():
        raise ConfigurationError("encryption_options enabled but truststore not provided")

    if protocols is None:
        protocols = DEFAULT_PROTOCOLS
    if suites is None:
        suites = default_cipher_suites()
    validate_protocols(protocols)
    validate_cipher_suites(suites)

    # The TLS 1.2 stack falls back to its own list when given no usable suite
    if not usable_below_tls13(protocols, suites):
        raise ConfigurationError(
            "cipher_suites lists no suite usable with " + ", ".join(p for p in protocols if p != "TLSv1.3")
        )

    return EncryptionOptions(
        enabled=True,
        keystore=keystore,
        keystore_password=keystore_password,
        truststore=truststore,
        truststore_password=truststore_password,
        accepted_protocols=protocols,
        cipher_suites=suites,
        require_client_auth=require_client_auth,
    )
