"""
Workflows package for chstatus.

This package contains the per-cycle driver and the multi-event workflow.
"""
from .orchestrator import run_processing_workflow

__all__ = ['run_processing_workflow']
