"""Utility modules for CostScan functions."""

from utils.pipeline_logger import (
    log_pipeline_start,
    log_pipeline_complete,
    log_pipeline_failed,
    log_file_result,
)

__all__ = [
    "log_pipeline_start",
    "log_pipeline_complete",
    "log_pipeline_failed",
    "log_file_result",
]
