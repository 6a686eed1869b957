# noa/services/__init__.py
from .database import db_session, init_db
from .reports import SqlReportService
from .patient_records import SqlPatientRecordStore
from .platform_api import PlatformApiClient, PlatformApiError

__all__ = [
    "db_session",
    "init_db",
    "SqlReportService",
    "SqlPatientRecordStore",
    "PlatformApiClient",
    "PlatformApiError",
]
