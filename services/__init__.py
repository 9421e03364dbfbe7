"""
Services package for the posture monitor.
Provides session accounting, daily history, reporting and the monitor pipeline.
"""

from services.history_store import DailyHistoryStore
from services.session_manager import SessionAccumulator, MonitoringSession
from services.report_generator import ReportGenerator
from services.audit_logger import SessionAuditLogger, EventType
from services.posture_monitor import PostureMonitor

__all__ = [
    # History
    'DailyHistoryStore',
    # Session accounting
    'SessionAccumulator',
    'MonitoringSession',
    # Reports
    'ReportGenerator',
    # Audit logging
    'SessionAuditLogger',
    'EventType',
    # Pipeline
    'PostureMonitor',
]
