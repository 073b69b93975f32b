"""
Saving the measurements of one pitcher run to CSV or JSON.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Union

import numpy as np
import pandas as pd

from tcpping.stats import RoundTripRecord

logger = logging.getLogger('Export')

COLUMNS = ['message_id', 'host_a_timestamp', 'host_b_timestamp', 'rtt_timestamp']
LATENCY_COLUMNS = ['rtt_ms', 'a_to_b_ms', 'b_to_a_ms']


def records_to_frame(records: Iterable[RoundTripRecord]) -> pd.DataFrame:
    """One row per answered probe, with the derived latencies in milliseconds"""
    df = pd.DataFrame([(r.message_id, r.host_a_timestamp, r.host_b_timestamp, r.rtt_timestamp)
                       for r in records], columns=COLUMNS, dtype='int64')

    df['sent_at'] = pd.to_datetime(df['host_a_timestamp'], unit='ms', utc=True)
    df['rtt_ms'] = df['rtt_timestamp'] - df['host_a_timestamp']
    df['a_to_b_ms'] = df['host_b_timestamp'] - df['host_a_timestamp']
    df['b_to_a_ms'] = df['rtt_timestamp'] - df['host_b_timestamp']
    return df.sort_values('message_id').reset_index(drop=True)


def calculate_statistics(df: pd.DataFrame) -> Dict[str, Any]:
    """Summary statistics for each latency column"""
    stats: Dict[str, Any] = {'packet_count': int(len(df))}
    if df.empty:
        return stats

    for column in LATENCY_COLUMNS:
        values = df[column].to_numpy(dtype=float)
        stats[column] = {
            'min': float(np.min(values)),
            'max': float(np.max(values)),
            'mean': float(np.mean(values)),
            'median': float(np.median(values)),
            'p95': float(np.percentile(values, 95)),
            'stdev': float(np.std(values, ddof=1)) if len(values) > 1 else 0.0,
        }
    return stats


def save_measurements(records: Iterable[RoundTripRecord], path: Union[str, Path]) -> Path:
    """
    Write the records to path.

    A ``.json`` suffix produces ``{"measurements": [...], "statistics": {...}}``;
    anything else is written as CSV.
    """
    path = Path(path)
    df = records_to_frame(records)

    if path.suffix.lower() == '.json':
        rows = df.assign(sent_at=df['sent_at'].map(lambda ts: ts.isoformat()))
        output = {
            'measurements': rows.to_dict(orient='records'),
            'statistics': calculate_statistics(df),
        }
        with open(path, 'w') as f:
            json.dump(output, f, indent=2, default=int)
    else:
        df.to_csv(path, index=False)

    logger.info(f"Saved {len(df)} measurements to {path}")
    return path


def load_measurements(path: Union[str, Path]) -> pd.DataFrame:
    """Read back a CSV written by save_measurements"""
    df = pd.read_csv(path)
    df['sent_at'] = pd.to_datetime(df['sent_at'], utc=True)
    return df
