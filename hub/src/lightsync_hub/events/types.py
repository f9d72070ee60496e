"""Event type constants for the LightSync Hub event bus.

These constants define the canonical event type strings used throughout
the hub. Components publish events using these types, and subscribers
(the websocket relay, the tray/UI collaborator) filter on them.
"""

from __future__ import annotations


class EventType:
    """Namespace for event type string constants."""

    # Discovery events
    SCAN_PROGRESS = "scan.progress"

    # Scene events
    SCENE_ACTIVATED = "scene.activated"

    # Sensor events
    SENSOR_CHANGED = "sensor.changed"
    MONITORING_CHANGED = "monitoring.changed"
