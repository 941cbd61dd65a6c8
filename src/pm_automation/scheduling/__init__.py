"""Cron matching, clocks and the periodic scheduler tick."""

from .clock import Clock, SystemClock
from .cron import CronExpression, cron_matches, next_fire_time, parse_cron
from .scheduler import Scheduler, TickListener

__all__ = [
    "Clock",
    "CronExpression",
    "Scheduler",
    "SystemClock",
    "TickListener",
    "cron_matches",
    "next_fire_time",
    "parse_cron",
]
