"""
Alert Evaluator

Classifies a notification as normal, reminder or due from the current
counters and today's date. Pure functions, safe to call per row.

Counter basis:  remaining = target - current
                due if remaining <= 0, reminder if remaining <= alert_hours
Date basis:     days = due_date - today (calendar days)
                due if days <= 0, reminder if days <= alert_days

Missing counters or counter type never raise an alert.
"""

from datetime import date
from typing import Iterable, Optional

from models.counters import CounterSnapshot
from models.notification import (
    AlertState,
    Notification,
    NotificationBasis,
    DEFAULT_ALERT_DAYS,
    DEFAULT_ALERT_HOURS,
)


def days_until(due_date: date, today: Optional[date] = None) -> int:
    """Whole calendar days from today to due_date, time of day ignored."""
    today = today or date.today()
    return (due_date - today).days


def evaluate_alert(
    notification: Notification,
    counters: Optional[CounterSnapshot] = None,
    today: Optional[date] = None,
) -> AlertState:
    if notification.is_completed:
        return AlertState.NORMAL

    if notification.notification_basis == NotificationBasis.COUNTER:
        return _evaluate_counter(notification, counters)
    return _evaluate_date(notification, today)


def _evaluate_counter(notification: Notification, counters: Optional[CounterSnapshot]) -> AlertState:
    if counters is None or notification.counter_type is None:
        return AlertState.NORMAL

    current = counters.value_for(notification.counter_type) or 0.0
    target = notification.initial_counter_value or 0.0
    remaining = target - current
    alert_hours = notification.alert_hours if notification.alert_hours is not None else DEFAULT_ALERT_HOURS

    if remaining <= 0:
        return AlertState.DUE
    if remaining <= alert_hours:
        return AlertState.REMINDER
    return AlertState.NORMAL


def _evaluate_date(notification: Notification, today: Optional[date]) -> AlertState:
    diff_days = days_until(notification.initial_date, today)
    alert_days = notification.alert_days if notification.alert_days is not None else DEFAULT_ALERT_DAYS

    if diff_days <= 0:
        return AlertState.DUE
    if diff_days <= alert_days:
        return AlertState.REMINDER
    return AlertState.NORMAL


def has_active_alert(
    notifications: Iterable[Notification],
    counters: Optional[CounterSnapshot] = None,
    today: Optional[date] = None,
) -> bool:
    """True if any open notification is in reminder or due state."""
    return any(
        evaluate_alert(n, counters, today) != AlertState.NORMAL
        for n in notifications
        if not n.is_completed
    )
