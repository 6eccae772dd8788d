"""
Domain models for Nebula.

Modules, capabilities, stack state views, settings and operation
receipts. Everything is importable from here.
"""

from nebula.core.models.module import (
    Capability,
    ModuleContext,
    ModuleDescriptor,
    ModuleFactory,
    ModuleMetadata,
    as_descriptor,
    capability_key,
    define_module,
)
from nebula.core.models.operation import Operation, OperationReceipt
from nebula.core.models.settings import BootstrapConfig, EnvironmentSettings
from nebula.core.models.stack import ResourceNode

__all__ = [
    "BootstrapConfig",
    "Capability",
    "EnvironmentSettings",
    "ModuleContext",
    "ModuleDescriptor",
    "ModuleFactory",
    "ModuleMetadata",
    "Operation",
    "OperationReceipt",
    "ResourceNode",
    "as_descriptor",
    "capability_key",
    "define_module",
]
