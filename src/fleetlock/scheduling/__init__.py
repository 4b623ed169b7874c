"""Trigger sources for guarded jobs.

Triggers control WHEN a job is attempted; the execution gate controls
WHETHER it runs on this instance.
"""

from .cron import CronTrigger
from .manual import ManualTrigger
from .protocol import TriggerCallback, TriggerHealth, TriggerSource
from .thread_backend import IntervalTrigger, ThreadTrigger

__all__ = [
    "CronTrigger",
    "IntervalTrigger",
    "ManualTrigger",
    "ThreadTrigger",
    "TriggerCallback",
    "TriggerHealth",
    "TriggerSource",
]
