"""Orchestrator package - coordinates direct binary upload workflows."""
from .core import UploadOrchestrator
from .process import DirectBinaryUploadProcess
from .queue import BatchManager, ConcurrentQueue

__all__ = ["UploadOrchestrator", "DirectBinaryUploadProcess", "BatchManager", "ConcurrentQueue"]
