"""Corrections applied to MyWhoosh activity files before upload.

MyWhoosh writes sessions without average power, heart rate or cadence and
records a temperature channel that Garmin Connect rejects. The corrector
derives the missing averages from the record stream, drops temperature, and
rewrites the device identity so the activity is accepted as coming from a
Garmin watch.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import numpy as np

from config.settings import SpoofDevice
from models.activity import (
    ActivityFile,
    DeviceIdentity,
    SINT8_INVALID,
    UINT8_INVALID,
    UINT16_INVALID,
    is_invalid_u8,
    is_invalid_u16,
)
from parsers.fit_codec import decode_activity, write_activity

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

SPOOF_IDENTITY = DeviceIdentity(
    manufacturer=SpoofDevice.MANUFACTURER,
    product=SpoofDevice.PRODUCT,
    serial_number=SpoofDevice.SERIAL_NUMBER,
)


def _log_progress(message: str):
    logger.info(message)


def needs_fix(value: Optional[int], sentinel: int) -> bool:
    """An aggregate is missing when it holds its sentinel or exactly zero."""
    return value is None or value == sentinel or value == 0


def mean_truncated(samples: List[int]) -> int:
    """Integer mean, truncated, accumulated in 64 bits."""
    total = np.asarray(samples, dtype=np.uint64).sum(dtype=np.uint64)
    return int(total // np.uint64(len(samples)))


@dataclass
class SamplePools:
    """Valid samples collected from every record of the file."""

    power: List[int] = field(default_factory=list)
    heart_rate: List[int] = field(default_factory=list)
    cadence: List[int] = field(default_factory=list)


@dataclass
class CorrectionReport:
    """What a correction pass changed."""

    record_count: int = 0
    power_samples: int = 0
    heart_rate_samples: int = 0
    cadence_samples: int = 0
    derived: Dict[int, Dict[str, int]] = field(default_factory=dict)
    identity: Optional[DeviceIdentity] = None
    devices_spoofed: int = 0


class ActivityCorrector:
    """Fixes session averages, strips temperature and spoofs the device."""

    def __init__(self, spoof_identity: DeviceIdentity = SPOOF_IDENTITY,
                 spoof_name: str = SpoofDevice.NAME):
        self.spoof_identity = spoof_identity
        self.spoof_name = spoof_name

    def correct(self, activity: ActivityFile,
                progress: Optional[ProgressCallback] = None) -> CorrectionReport:
        """Correct a decoded activity in place.

        Args:
            activity: Decoded activity file
            progress: Receives one human-readable line per step; defaults to the
                module logger

        Returns:
            CorrectionReport describing the changes
        """
        emit = progress or _log_progress
        report = CorrectionReport(record_count=len(activity.records))

        pools = self._collect_samples(activity)
        report.power_samples = len(pools.power)
        report.heart_rate_samples = len(pools.heart_rate)
        report.cadence_samples = len(pools.cadence)
        emit(
            f"Records: {report.record_count} | Power: {report.power_samples} | "
            f"HR: {report.heart_rate_samples} | Cadence: {report.cadence_samples} samples"
        )

        # One pool for the whole file; MyWhoosh writes a single session per activity
        for index, session in enumerate(activity.sessions):
            derived = {}
            if needs_fix(session.avg_power, UINT16_INVALID) and pools.power:
                session.avg_power = mean_truncated(pools.power)
                derived['avg_power'] = session.avg_power
                emit(f"  -> avg power:      {session.avg_power} W")
            if needs_fix(session.avg_heart_rate, UINT8_INVALID) and pools.heart_rate:
                session.avg_heart_rate = mean_truncated(pools.heart_rate)
                derived['avg_heart_rate'] = session.avg_heart_rate
                emit(f"  -> avg heart rate: {session.avg_heart_rate} bpm")
            if needs_fix(session.avg_cadence, UINT8_INVALID) and pools.cadence:
                session.avg_cadence = mean_truncated(pools.cadence)
                derived['avg_cadence'] = session.avg_cadence
                emit(f"  -> avg cadence:    {session.avg_cadence} rpm")
            if derived:
                report.derived[index] = derived

        report.devices_spoofed = self.spoof_device(activity)
        report.identity = self.spoof_identity
        emit(f"  -> device spoofed: {self.spoof_name} (product {self.spoof_identity.product})")
        return report

    def _collect_samples(self, activity: ActivityFile) -> SamplePools:
        """Gather valid samples and blank the temperature of every record."""
        pools = SamplePools()
        for record in activity.records:
            if not is_invalid_u16(record.power):
                pools.power.append(record.power)
            if not is_invalid_u8(record.heart_rate):
                pools.heart_rate.append(record.heart_rate)
            if not is_invalid_u8(record.cadence):
                pools.cadence.append(record.cadence)
            record.temperature = SINT8_INVALID
        return pools

    def spoof_device(self, activity: ActivityFile) -> int:
        """Write the spoof identity to the file id and every device entry.

        Returns:
            Number of device entries rewritten
        """
        spoof = self.spoof_identity
        for identity in activity.identities:
            identity.manufacturer = spoof.manufacturer
            identity.product = spoof.product
            identity.serial_number = spoof.serial_number
        return len(activity.device_infos)


def fix_fit_file(input_path: Union[str, Path], output_path: Union[str, Path],
                 progress: Optional[ProgressCallback] = None,
                 corrector: Optional[ActivityCorrector] = None) -> CorrectionReport:
    """Read a MyWhoosh FIT activity, correct it and write the result.

    Raises:
        DecodeError: If the input is not a readable activity file
        EncodeError: If the corrected file cannot be written
    """
    corrector = corrector or ActivityCorrector()
    activity = decode_activity(input_path)
    report = corrector.correct(activity, progress=progress)
    write_activity(activity, output_path)
    return report
