"""Module entrypoint for `python -m mgmt_endpoint`.

Purpose: Delegate to `mgmt_endpoint.server.main` to start the management listener.
"""

from .server import main


if __name__ == "__main__":
    main()
