"""Error taxonomy shared by controllers, managers and the API layer.

``NotFoundError`` and ``ConflictError`` surface to the caller immediately and
are never retried. ``ProtocolError`` covers anything that went wrong talking
to a device or bridge; session-oriented controllers retry those once on their
own before letting them escape.
"""

from __future__ import annotations


class HubError(Exception):
    """Base class for all LightSync Hub errors."""


class NotFoundError(HubError):
    """Unknown scene, device, bridge or brand."""


class ConflictError(HubError):
    """A scene trigger is already claimed by another scene."""


class ValidationError(HubError):
    """Malformed or empty payload from a bridge or device API."""


class ProtocolError(HubError):
    """Network failure, timeout or malformed response from a device."""


class UnreachableError(ProtocolError):
    """The device or bridge did not answer at all."""


class DiscoveryFailedError(ProtocolError):
    """Every controller failed and none of them produced a device."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"discovery failed: {'; '.join(errors)}")
        self.errors = list(errors)


class PairingError(ProtocolError):
    """The bridge refused or could not complete a pairing request."""

    reason = "pairing failed"


class LinkButtonNotPressedError(PairingError):
    reason = "link button not pressed"


class BridgeUnreachableError(PairingError):
    reason = "bridge unreachable"
