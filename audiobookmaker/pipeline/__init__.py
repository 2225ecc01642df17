"""Conversion pipeline: orchestration state machine and resume assessment."""

from .orchestrator import ConversionOrchestrator
from .resume import ResumeAssessment, assess_resume

__all__ = ["ConversionOrchestrator", "ResumeAssessment", "assess_resume"]
