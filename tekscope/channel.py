"""Oscilloscope input channels."""

from __future__ import annotations

from enum import IntEnum


class ScopeChannel(IntEnum):
    """An analogue input channel of the oscilloscope."""

    CH1 = 1
    CH2 = 2
    CH3 = 3
    CH4 = 4

    def __str__(self) -> str:
        return channel_name(self)


def channel_name(channel) -> str:
    """Return the instrument name of a channel, falling back to "CH1"."""
    try:
        return ScopeChannel(int(channel)).name
    except (ValueError, TypeError):
        return "CH1"