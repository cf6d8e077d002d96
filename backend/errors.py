# backend/errors.py
"""Error kinds raised by the services and translated by the HTTP layer."""


class BridgeError(Exception):
    pass


class InvalidInput(BridgeError):
    """A required request field is missing (400)."""


class Unauthenticated(BridgeError):
    """No usable Microsoft token on file for the user."""


class UpstreamError(BridgeError):
    """The identity provider or Graph rejected the call or was unreachable."""
