"""Management endpoint TLS bootstrap.

Purpose: Decide whether the administrative listener uses TLS, build matched
server/client socket factories, publish client TLS properties, and host the
WebSocket management endpoint itself.

"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
