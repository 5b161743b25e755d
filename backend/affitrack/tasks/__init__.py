from affitrack.tasks.fraud import rescan_events

__all__ = [
    "rescan_events",
]
