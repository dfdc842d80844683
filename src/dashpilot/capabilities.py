"""Platform capabilities, resolved once at startup."""

from __future__ import annotations

import dataclasses
import logging
import sys

from dashpilot.config import DashPilotConfig

_logger = logging.getLogger(__name__)

# Hosts with no access to a Bluetooth radio or serial ports.
_SANDBOXED_PLATFORMS = frozenset({"emscripten", "wasi"})


@dataclasses.dataclass(frozen=True)
class Capabilities:
    """What the host can do.

    Components check these flags instead of inspecting the platform
    themselves.  ``bluetooth`` gates the connection session; ``keep_awake``
    tells the UI whether honouring the keep-screen-on toggle is possible.
    """

    bluetooth: bool
    keep_awake: bool
    platform: str

    @classmethod
    def detect(cls, config: DashPilotConfig | None = None, *, platform: str | None = None) -> Capabilities:
        plat = platform or sys.platform
        sandboxed = plat in _SANDBOXED_PLATFORMS
        bluetooth = not sandboxed
        if config is not None and config.bluetooth_enabled is not None:
            bluetooth = config.bluetooth_enabled
        caps = cls(bluetooth=bluetooth, keep_awake=not sandboxed, platform=plat)
        _logger.debug("Resolved capabilities: %s", caps)
        return caps
