"""Execution-plan text parsing module."""

from sqlanalyzer.parser.config import DEFAULT_CONFIG, ParserConfig
from sqlanalyzer.parser.models import (
    INDENT_UNIT,
    ActualTime,
    PlanForest,
    PlanMode,
    PlanNode,
)
from sqlanalyzer.parser.parser import parse_line, parse_plan

__all__ = [
    "ActualTime",
    "DEFAULT_CONFIG",
    "INDENT_UNIT",
    "ParserConfig",
    "PlanForest",
    "PlanMode",
    "PlanNode",
    "parse_line",
    "parse_plan",
]
