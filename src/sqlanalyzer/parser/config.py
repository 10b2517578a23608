"""
Parser configuration with resource limits.

These limits stop pathological plan text from exhausting memory. The
defaults are generous for normal usage but will catch genuinely
problematic input. Tree depth needs no limit: the builder is iterative.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ParserConfig(BaseModel):
    """
    Configuration for the plan parser with resource limits.

    Attributes:
        max_input_bytes: Maximum plan text size accepted.
        max_nodes: Maximum number of plan nodes built from one text.

    Example:
        # Stricter limits for a web API
        config = ParserConfig(max_input_bytes=1_000_000, max_nodes=1000)
    """

    max_input_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Maximum plan text size in bytes",
    )

    max_nodes: int = Field(
        default=50_000,
        gt=0,
        description="Maximum number of plan nodes",
    )


DEFAULT_CONFIG = ParserConfig()
