"""Trigger matching against activity events."""

from wekan_rules.triggers.matcher import TriggerMatcher

__all__ = ["TriggerMatcher"]
