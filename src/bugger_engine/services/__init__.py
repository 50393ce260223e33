"""Bugger Engine services."""

from bugger_engine.services.analysis import AnalysisPipeline, CycleOutcome
from bugger_engine.services.context import discover
from bugger_engine.services.providers import select_provider

__all__ = [
    "AnalysisPipeline",
    "CycleOutcome",
    "discover",
    "select_provider",
]
