"""
Hairstyle try-on module
Style catalog, image normalization, generator clients and the workflow state machine.
"""
from .catalog import HairstyleOption, StyleCatalog, load_catalog
from .clients import get_generator
from .workflow import GeneratedResult, Step, WorkflowController, WorkflowState

__all__ = [
    "HairstyleOption",
    "StyleCatalog",
    "load_catalog",
    "get_generator",
    "GeneratedResult",
    "Step",
    "WorkflowController",
    "WorkflowState",
]
