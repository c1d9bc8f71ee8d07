"""FIT activity codec built on fit-tool.

Decoding produces an :class:`ActivityFile` whose typed views point back at
the fit-tool messages they came from. Encoding writes the owned fields
(session averages, record temperature, device identity) back onto those
messages and rebuilds the file; every other message and field is carried
through as decoded.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from fit_tool.definition_message import DefinitionMessage
from fit_tool.fit_file import FitFile
from fit_tool.fit_file_builder import FitFileBuilder
from fit_tool.profile.messages.device_info_message import DeviceInfoMessage
from fit_tool.profile.messages.file_id_message import FileIdMessage
from fit_tool.profile.messages.lap_message import LapMessage
from fit_tool.profile.messages.record_message import RecordMessage
from fit_tool.profile.messages.session_message import SessionMessage
from fit_tool.profile.profile_type import FileType

from models.activity import (
    ActivityFile,
    ActivityRecord,
    DeviceIdentity,
    LapSummary,
    SessionSummary,
    SINT8_INVALID,
    UINT8_INVALID,
    UINT16_INVALID,
)
from utils.errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)

# Header attributes copied from the decoded file so the output keeps its versions
_HEADER_VERSION_ATTRS = (
    'protocol_version',
    'protocol_major_version',
    'protocol_minor_version',
    'profile_version',
    'profile_major_version',
    'profile_minor_version',
)


def _enum_value(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(getattr(value, 'value', value))


def _or_sentinel(value: Optional[int], sentinel: int) -> int:
    return sentinel if value is None else int(value)


def _read_identity(message) -> DeviceIdentity:
    return DeviceIdentity(
        manufacturer=_enum_value(message.manufacturer),
        product=message.product,
        serial_number=message.serial_number,
        device_index=getattr(message, 'device_index', None),
        source=message,
    )


def read_fit_file(file_path: Union[str, Path]) -> FitFile:
    """Read raw FIT bytes into a fit-tool FitFile.

    Raises:
        DecodeError: If the file is missing or not valid FIT data
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise DecodeError(f"File not found: {file_path}")
    try:
        return FitFile.from_file(str(file_path))
    except Exception as e:
        raise DecodeError(f"Failed to decode FIT file {file_path}: {e}") from e


def decode_activity(file_path: Union[str, Path]) -> ActivityFile:
    """Decode a FIT activity file.

    Args:
        file_path: Path to the FIT file

    Returns:
        ActivityFile with typed views over the decoded messages

    Raises:
        DecodeError: If the file cannot be decoded or is not an activity file
    """
    fit_file = read_fit_file(file_path)

    file_id = None
    records, sessions, laps, device_infos, messages = [], [], [], [], []

    for record in fit_file.records:
        message = record.message
        if isinstance(message, DefinitionMessage):
            continue
        messages.append(message)

        if isinstance(message, FileIdMessage):
            if file_id is None:
                file_id = _read_identity(message)
                file_id.device_index = None
        elif isinstance(message, RecordMessage):
            records.append(ActivityRecord(
                timestamp=message.timestamp,
                power=_or_sentinel(message.power, UINT16_INVALID),
                heart_rate=_or_sentinel(message.heart_rate, UINT8_INVALID),
                cadence=_or_sentinel(message.cadence, UINT8_INVALID),
                temperature=_or_sentinel(message.temperature, SINT8_INVALID),
                source=message,
            ))
        elif isinstance(message, SessionMessage):
            sessions.append(SessionSummary(
                avg_power=_or_sentinel(message.avg_power, UINT16_INVALID),
                avg_heart_rate=_or_sentinel(message.avg_heart_rate, UINT8_INVALID),
                avg_cadence=_or_sentinel(message.avg_cadence, UINT8_INVALID),
                sport=message.sport,
                start_time=message.start_time,
                timestamp=message.timestamp,
                source=message,
            ))
        elif isinstance(message, LapMessage):
            laps.append(LapSummary(
                start_time=message.start_time,
                timestamp=message.timestamp,
                source=message,
            ))
        elif isinstance(message, DeviceInfoMessage):
            device_infos.append(_read_identity(message))

    if file_id is None:
        raise DecodeError(f"Not an activity file (no file_id message): {file_path}")

    file_type = _enum_value(file_id.source.type)
    if file_type != FileType.ACTIVITY.value:
        raise DecodeError(f"Not an activity file (file type {file_type}): {file_path}")

    logger.debug(
        f"Decoded {file_path}: {len(records)} records, {len(sessions)} sessions, "
        f"{len(laps)} laps, {len(device_infos)} devices"
    )

    return ActivityFile(
        file_id=file_id,
        records=records,
        sessions=sessions,
        laps=laps,
        device_infos=device_infos,
        messages=messages,
        header=getattr(fit_file, 'header', None),
    )


def _owned_values_match(message, values: Dict[str, Any]) -> bool:
    return all(_enum_value(getattr(message, name)) == _enum_value(value)
               for name, value in values.items())


def _rebuilt_copy(message):
    """Fresh message of the same type carrying every readable profile field.

    Decoded messages only hold the fields their definition declared; a new
    message accepts any profile field.
    """
    copy = type(message)()
    for name, attr in vars(type(message)).items():
        if name.startswith('_') or not isinstance(attr, property) or attr.fset is None:
            continue
        value = getattr(message, name)
        if value is not None:
            setattr(copy, name, value)
    return copy


def _set_owned(message, values: Dict[str, Any]):
    """Set ``values`` on ``message``; returns the message to emit in its place."""
    try:
        for name, value in values.items():
            setattr(message, name, value)
        if _owned_values_match(message, values):
            return message
    except (AttributeError, IndexError, TypeError, ValueError) as e:
        logger.debug(f"Rebuilding {type(message).__name__}: {e}")

    copy = _rebuilt_copy(message)
    for name, value in values.items():
        setattr(copy, name, value)
    return copy


def _apply_owned_fields(activity: ActivityFile):
    """Copy the typed views back onto their source messages.

    Sentinels are written as the raw FIT invalid value; a sentinel for a
    field the message never carried leaves the field absent. Messages that
    cannot hold a new field are swapped for rebuilt copies, both in
    ``activity.messages`` and in the view's ``source``.
    """
    replaced = {}

    def apply(view, values, sentinels=None):
        message = view.source
        if message is None:
            return
        sentinels = sentinels or {}
        values = {
            name: value for name, value in values.items()
            if value is not None
            and not (name in sentinels and value == sentinels[name] and getattr(message, name) is None)
        }
        if not values:
            return
        rebuilt = _set_owned(message, values)
        if rebuilt is not message:
            replaced[id(message)] = rebuilt
            view.source = rebuilt

    for record in activity.records:
        apply(record, {'temperature': record.temperature}, {'temperature': SINT8_INVALID})

    for session in activity.sessions:
        apply(session, {
            'avg_power': session.avg_power,
            'avg_heart_rate': session.avg_heart_rate,
            'avg_cadence': session.avg_cadence,
        }, {
            'avg_power': UINT16_INVALID,
            'avg_heart_rate': UINT8_INVALID,
            'avg_cadence': UINT8_INVALID,
        })

    for identity in activity.identities:
        apply(identity, {
            'manufacturer': identity.manufacturer,
            'product': identity.product,
            'serial_number': identity.serial_number,
        })

    if replaced:
        activity.messages = [replaced.get(id(m), m) for m in activity.messages]


def _copy_header_versions(source_header, target_header):
    # Plain instance attributes only; computed header properties are left alone
    source_attrs = getattr(source_header, '__dict__', {})
    target_attrs = getattr(target_header, '__dict__', {})
    for attr in _HEADER_VERSION_ATTRS:
        if attr in source_attrs and attr in target_attrs:
            setattr(target_header, attr, source_attrs[attr])


def encode_activity(activity: ActivityFile) -> bytes:
    """Encode a (corrected) activity back to FIT bytes.

    Raises:
        EncodeError: If fit-tool cannot rebuild the file
    """
    try:
        _apply_owned_fields(activity)
        builder = FitFileBuilder(auto_define=True)
        for message in activity.messages:
            builder.add(message)
        fit_file = builder.build()
        _copy_header_versions(activity.header, getattr(fit_file, 'header', None))
        return fit_file.to_bytes()
    except Exception as e:
        raise EncodeError(f"Failed to encode activity: {e}") from e


def write_activity(activity: ActivityFile, output_path: Union[str, Path]) -> Path:
    """Encode an activity and write it to ``output_path``.

    Raises:
        EncodeError: If encoding or writing fails
    """
    output_path = Path(output_path)
    data = encode_activity(activity)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'wb') as f:
            f.write(data)
    except OSError as e:
        raise EncodeError(f"Failed to write {output_path}: {e}") from e

    logger.debug(f"Wrote {len(data)} bytes to {output_path}")
    return output_path
