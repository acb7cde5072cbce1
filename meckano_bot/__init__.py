"""
Meckano Bot - Automated monthly report filling for Meckano.

This package logs into the Meckano attendance portal and fills the empty
entrance/exit cells of every work day in the monthly employee report with
randomized times inside a configured window. Existing values are never
overwritten.
"""

__version__ = '1.0.0'
__author__ = 'Meckano Automation'

from .models import RowRecord, FillOutcome, TimeEntry, RunSummary
from .config import Config, ConfigError, TimeWindow, FillTiming
from .playwright_client import MeckanoClient, CellFiller, run_fill_operation

__all__ = [
    'RowRecord',
    'FillOutcome',
    'TimeEntry',
    'RunSummary',
    'Config',
    'ConfigError',
    'TimeWindow',
    'FillTiming',
    'MeckanoClient',
    'CellFiller',
    'run_fill_operation',
]
