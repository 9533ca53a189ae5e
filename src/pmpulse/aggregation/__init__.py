"""Multi-source aggregation."""

from pmpulse.aggregation.aggregator import Aggregator
from pmpulse.aggregation.progress import NullProgress, PipelineProgress

__all__ = ["Aggregator", "NullProgress", "PipelineProgress"]
