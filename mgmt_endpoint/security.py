from __future__ import annotations

"""Connection admission policy helpers.

Purpose: Decide whether to accept a management connection based on the remote
address and the `local_only` flag, independently of TLS, and check the
password handshake that follows.

Contract:
- decide_accept_connection(remote_addr, local_only) -> (accepted: bool, reason: str)
  Reasons: "ok", "remote_disabled"
- decide_handshake(handshake, password) -> (accepted: bool, reason: str)
  Reasons: "ok", "auth_failed", "bad_handshake"
"""

import hmac
import ipaddress
from typing import Any, Dict, Optional, Tuple


def is_loopback_address(addr: str) -> bool:
    if addr == "localhost":
        return True
    try:
        ip = ipaddress.ip_address(addr)
    except ValueError:
        return False
    mapped = getattr(ip, "ipv4_mapped", None)
    if mapped is not None:
        return mapped.is_loopback
    return ip.is_loopback


def decide_accept_connection(
    remote: Tuple[Any, ...] | None,
    local_only: bool,
) -> tuple[bool, str]:
    if not local_only:
        return True, "ok"
    # Unknown peers cannot be proven local
    if not remote:
        return False, "remote_disabled"
    if not is_loopback_address(str(remote[0])):
        return False, "remote_disabled"
    return True, "ok"


def decide_handshake(handshake: Dict[str, Any], password: Optional[str]) -> tuple[bool, str]:
    if not isinstance(handshake, dict) or handshake.get("type") != "handshake":
        return False, "bad_handshake"
    if password:
        provided = handshake.get("password")
        if not isinstance(provided, str) or not hmac.compare_digest(provided.encode("utf-8"), password.encode("utf-8")):
            return False, "auth_failed"
    return True, "ok"
