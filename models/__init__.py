"""Data models for whoosh2garmin."""

from .activity import (
    ActivityFile,
    ActivityRecord,
    DeviceIdentity,
    LapSummary,
    SessionSummary,
    SINT8_INVALID,
    UINT8_INVALID,
    UINT16_INVALID,
    UINT32_INVALID,
)
from .tokens import OAuth1Credential, OAuth2Credential

__all__ = [
    'ActivityFile',
    'ActivityRecord',
    'DeviceIdentity',
    'LapSummary',
    'SessionSummary',
    'SINT8_INVALID',
    'UINT8_INVALID',
    'UINT16_INVALID',
    'UINT32_INVALID',
    'OAuth1Credential',
    'OAuth2Credential',
]
