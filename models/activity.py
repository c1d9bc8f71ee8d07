"""Data models for a decoded FIT activity."""

from dataclasses import dataclass, field
from typing import Any, List, Optional

# FIT base-type invalid values. A field holding one of these carries no measurement.
UINT8_INVALID = 0xFF
UINT16_INVALID = 0xFFFF
UINT32_INVALID = 0xFFFFFFFF
SINT8_INVALID = 0x7F


def is_invalid_u8(value: Optional[int]) -> bool:
    return value is None or value == UINT8_INVALID


def is_invalid_u16(value: Optional[int]) -> bool:
    return value is None or value == UINT16_INVALID


@dataclass
class ActivityRecord:
    """One sample from the record stream."""

    timestamp: Optional[int] = None
    power: int = UINT16_INVALID
    heart_rate: int = UINT8_INVALID
    cadence: int = UINT8_INVALID
    temperature: int = SINT8_INVALID
    source: Any = field(default=None, repr=False, compare=False)


@dataclass
class SessionSummary:
    """Aggregates for one session as written by the producer."""

    avg_power: int = UINT16_INVALID
    avg_heart_rate: int = UINT8_INVALID
    avg_cadence: int = UINT8_INVALID
    sport: Optional[Any] = None
    start_time: Optional[int] = None
    timestamp: Optional[int] = None
    source: Any = field(default=None, repr=False, compare=False)


@dataclass
class LapSummary:
    """Lap boundaries; carried through unchanged."""

    start_time: Optional[int] = None
    timestamp: Optional[int] = None
    source: Any = field(default=None, repr=False, compare=False)


@dataclass
class DeviceIdentity:
    """Manufacturer/product/serial triple of a file or a recording device."""

    manufacturer: Optional[int] = None
    product: Optional[int] = None
    serial_number: Optional[int] = None
    device_index: Optional[int] = None
    source: Any = field(default=None, repr=False, compare=False)


@dataclass
class ActivityFile:
    """A decoded activity, alive for one correction and re-encode pass.

    ``messages`` keeps every decoded codec message in file order so the
    encoder can write back the fields owned here and nothing else.
    """

    file_id: DeviceIdentity
    records: List[ActivityRecord] = field(default_factory=list)
    sessions: List[SessionSummary] = field(default_factory=list)
    laps: List[LapSummary] = field(default_factory=list)
    device_infos: List[DeviceIdentity] = field(default_factory=list)
    messages: List[Any] = field(default_factory=list, repr=False)
    header: Any = field(default=None, repr=False)

    @property
    def identities(self) -> List[DeviceIdentity]:
        """File-level identity followed by every device entry."""
        return [self.file_id] + list(self.device_infos)
