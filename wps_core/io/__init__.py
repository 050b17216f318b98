"""
I/O Module: audit log records and CSV writer.

The estimation engine performs no I/O; the server hands engine results to
this module after each request.
"""

from .audit_log import (
    AuditRecord,
    CsvAuditLog,
    RecordKind,
    build_estimation_records,
    build_scan_records,
)

__all__ = [
    'AuditRecord',
    'CsvAuditLog',
    'RecordKind',
    'build_estimation_records',
    'build_scan_records',
]
