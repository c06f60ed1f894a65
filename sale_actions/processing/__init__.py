"""
Reconciliation-and-dispatch pipeline.
"""

from .batcher import Batcher
from .definitions import DEFINITIONS, PURCHASES, RENEWALS, PipelineDefinition
from .dispatcher import Dispatcher
from .enricher import Enricher
from .pipeline import Pipeline
from .processed_writer import ProcessedSetWriter
from .scheduler import Scheduler, SchedulerState, StoreUnavailableError

__all__ = [
    "Batcher",
    "DEFINITIONS",
    "PURCHASES",
    "RENEWALS",
    "PipelineDefinition",
    "Dispatcher",
    "Enricher",
    "Pipeline",
    "ProcessedSetWriter",
    "Scheduler",
    "SchedulerState",
    "StoreUnavailableError",
]
