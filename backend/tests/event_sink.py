# tests/event_sink.py
"""In-memory event subscriber used by the test suite."""

received = []


def record(envelope: dict) -> None:
    received.append(envelope)


def explode(envelope: dict) -> None:
    raise RuntimeError("subscriber down")
