"""
Services package for the battle report statistics engine.
"""

from .base import BaseService
from .report_store import ReportStore
from .pairing_service import PairingService
from .report_history_service import ReportHistoryService

__all__ = ['BaseService', 'ReportStore', 'PairingService', 'ReportHistoryService']
