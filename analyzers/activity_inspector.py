"""Tabular view of the fields the corrector touches, for checking a file by eye."""

from typing import Dict

import pandas as pd

from models.activity import ActivityFile


def identity_table(activity: ActivityFile) -> pd.DataFrame:
    """File id followed by each device_info entry."""
    rows = [{
        'source': 'file_id',
        'device_index': None,
        'manufacturer': activity.file_id.manufacturer,
        'product': activity.file_id.product,
        'serial_number': activity.file_id.serial_number,
    }]
    for i, device in enumerate(activity.device_infos):
        rows.append({
            'source': f'device_info[{i}]',
            'device_index': device.device_index,
            'manufacturer': device.manufacturer,
            'product': device.product,
            'serial_number': device.serial_number,
        })
    return pd.DataFrame(rows)


def session_table(activity: ActivityFile) -> pd.DataFrame:
    return pd.DataFrame(
        [{
            'session': i,
            'sport': session.sport,
            'avg_power': session.avg_power,
            'avg_heart_rate': session.avg_heart_rate,
            'avg_cadence': session.avg_cadence,
        } for i, session in enumerate(activity.sessions)],
        columns=['session', 'sport', 'avg_power', 'avg_heart_rate', 'avg_cadence'],
    )


def record_table(activity: ActivityFile) -> pd.DataFrame:
    return pd.DataFrame(
        [{
            'timestamp': record.timestamp,
            'power': record.power,
            'heart_rate': record.heart_rate,
            'cadence': record.cadence,
            'temperature': record.temperature,
        } for record in activity.records],
        columns=['timestamp', 'power', 'heart_rate', 'cadence', 'temperature'],
    )


def inspect_activity(activity: ActivityFile) -> Dict[str, pd.DataFrame]:
    return {
        'identities': identity_table(activity),
        'sessions': session_table(activity),
        'records': record_table(activity),
    }


def format_inspection(activity: ActivityFile, max_records: int = 5) -> str:
    """Plain-text report of identities, sessions and the first few records."""
    tables = inspect_activity(activity)
    parts = [
        "=== file_id / device_info ===",
        tables['identities'].to_string(index=False),
        f"\n=== sessions ({len(activity.sessions)}) ===",
        tables['sessions'].to_string(index=False) if len(activity.sessions) else "(none)",
        f"\n=== records ({len(activity.records)}, first {max_records}) ===",
        tables['records'].head(max_records).to_string(index=False) if len(activity.records) else "(none)",
    ]
    return "\n".join(parts)
