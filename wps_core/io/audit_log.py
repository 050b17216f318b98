"""
Audit log of observations and estimates.

One estimation event produces:
- one device-estimate record (the estimated position),
- one used-anchor record per anchor that fed the estimate,
- one raw-scan record per observation with no registry match.

A scan-only request produces raw-scan records for every observation.
Latitude, longitude and accuracy are empty for raw-scan records.

Records are appended to a CSV file. The estimation engine never writes
here; the server does so after the engine returns.
"""

import csv
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from wps_core.proto.observation import Observation
from wps_core.proto.position_estimate import EstimationResult

logger = logging.getLogger(__name__)

CSV_HEADER = [
    'timestamp',
    'identifier',
    'signalStrength',
    'latitude',
    'longitude',
    'accuracyMeters',
    'recordKind',
    'source',
]

DEVICE_IDENTIFIER = 'device'


class RecordKind(Enum):
    """Kind of audit record."""

    DEVICE_ESTIMATE = "device-estimate"
    USED_ANCHOR = "used-anchor"
    RAW_SCAN = "raw-scan"


@dataclass(frozen=True)
class AuditRecord:
    """
    One audit log row.

    Attributes:
        timestamp: ISO-8601 UTC timestamp shared by all rows of one event
        identifier: Anchor identifier, or "device" for the estimate row
        signal_strength: Observed dBm (None for the estimate row)
        latitude / longitude / accuracy_m: None for raw-scan rows
        record_kind: RecordKind
        source: Estimation source tag, None for raw-scan rows
    """

    timestamp: str
    identifier: str
    signal_strength: Optional[int]
    latitude: Optional[float]
    longitude: Optional[float]
    accuracy_m: Optional[float]
    record_kind: RecordKind
    source: Optional[str] = None

    def to_row(self) -> List[str]:
        """CSV row in CSV_HEADER order; None becomes an empty cell."""
        values = [
            self.timestamp,
            self.identifier,
            self.signal_strength if self.signal_strength is not None else '-',
            self.latitude,
            self.longitude,
            self.accuracy_m,
            self.record_kind.value,
            self.source,
        ]
        return ['' if v is None else str(v) for v in values]


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _raw_scan_record(obs: Observation, timestamp: str) -> AuditRecord:
    return AuditRecord(
        timestamp=timestamp,
        identifier=obs.normalized_id,
        signal_strength=obs.signal_strength,
        latitude=None,
        longitude=None,
        accuracy_m=None,
        record_kind=RecordKind.RAW_SCAN,
    )


def build_estimation_records(
    result: EstimationResult,
    timestamp: Optional[str] = None,
) -> List[AuditRecord]:
    """
    Audit records for one estimation event.

    Args:
        result: Engine output
        timestamp: Shared timestamp (defaults to now)

    Returns:
        [device-estimate, used-anchor..., raw-scan...]
    """
    timestamp = timestamp or utc_timestamp()
    estimate = result.estimate
    source = result.source.value

    records = [
        AuditRecord(
            timestamp=timestamp,
            identifier=DEVICE_IDENTIFIER,
            signal_strength=None,
            latitude=estimate.latitude,
            longitude=estimate.longitude,
            accuracy_m=estimate.accuracy_m,
            record_kind=RecordKind.DEVICE_ESTIMATE,
            source=source,
        )
    ]

    for obs, anchor in result.used_anchors:
        records.append(AuditRecord(
            timestamp=timestamp,
            identifier=obs.normalized_id,
            signal_strength=obs.signal_strength,
            latitude=anchor.latitude,
            longitude=anchor.longitude,
            accuracy_m=estimate.accuracy_m,
            record_kind=RecordKind.USED_ANCHOR,
            source=source,
        ))

    records.extend(_raw_scan_record(obs, timestamp) for obs in result.unmatched)
    return records


def build_scan_records(
    observations: Sequence[Observation],
    timestamp: Optional[str] = None,
) -> List[AuditRecord]:
    """Raw-scan records for a scan saved without estimation."""
    timestamp = timestamp or utc_timestamp()
    return [_raw_scan_record(obs, timestamp) for obs in observations]


class CsvAuditLog:
    """
    Append-only CSV audit log.

    Usage:
        log = CsvAuditLog("wifi_logs.csv")
        log.append(build_estimation_records(result))

    The header row is written when the file is created. Appends from
    several threads are serialized.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._ensure_header()

    def _ensure_header(self):
        if self.path.exists() and self.path.stat().st_size > 0:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open('w', newline='', encoding='utf-8') as f:
            csv.writer(f).writerow(CSV_HEADER)
        logger.info(f"Created audit log {self.path}")

    def append(self, records: Iterable[AuditRecord]) -> int:
        """
        Append records.

        Returns:
            Number of rows written
        """
        rows = [r.to_row() for r in records]
        if not rows:
            return 0

        with self._lock:
            with self.path.open('a', newline='', encoding='utf-8') as f:
                csv.writer(f).writerows(rows)

        logger.debug(f"Appended {len(rows)} audit records to {self.path}")
        return len(rows)

    def read_records(self) -> List[dict]:
        """Read all rows back as dicts keyed by CSV_HEADER."""
        with self._lock:
            with self.path.open('r', newline='', encoding='utf-8') as f:
                return list(csv.DictReader(f))
