"""
Module models: the unit of orchestration.

A module is a factory that creates a slice of infrastructure. Modules
may declare the capabilities they *provide* and *require*; the engine
uses those declarations to order factory calls and to hand each
factory the resource handles it depends on.

Modules without metadata are *legacy*: they run after every tagged
module, receive no dependencies and cannot be depended upon.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Capability(str, Enum):
    """Well-known capability names.

    Free-text strings are still accepted anywhere a capability is;
    matching is plain string equality, so ``Capability.NETWORK`` and
    ``"network"`` are the same capability.
    """

    NETWORK = "network"
    CLUSTER = "cluster"
    KUBECONFIG = "kubeconfig"
    DNS = "dns"
    IAM = "iam"
    CERT_MANAGER_CRDS = "cert-manager-crds"
    INGRESS_CONTROLLER = "ingress-controller"
    EXTERNAL_DNS = "external-dns"
    SECRETS = "secrets"
    STORAGE = "storage"
    DATABASE = "database"
    MONITORING = "monitoring"


def capability_key(cap: Capability | str) -> str:
    """Normalise a capability to the plain string used as a graph key."""
    if isinstance(cap, Capability):
        return cap.value
    return str(cap)


class ModuleMetadata(BaseModel):
    """Declared identity and capabilities of a module."""

    name: str
    provides: list[str] = Field(default_factory=list)
    requires: list[str] = Field(default_factory=list)

    @field_validator("provides", "requires", mode="before")
    @classmethod
    def _normalise_capabilities(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, Capability)):
            value = [value]
        return [capability_key(v) for v in value]

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("module name must not be empty")
        return value


@dataclass
class ModuleContext:
    """Everything a factory needs to know about where it runs.

    Passed explicitly to every factory call. ``dependencies`` holds the
    resource handles of the modules providing this module's required
    capabilities, in ``requires`` order.
    """

    dependencies: list[Any] = field(default_factory=list)
    parent: Any | None = None
    environment_id: str | None = None
    component_name: str | None = None

    def with_dependencies(self, dependencies: list[Any]) -> ModuleContext:
        """Copy of this context carrying the given resolved handles."""
        return ModuleContext(
            dependencies=list(dependencies),
            parent=self.parent,
            environment_id=self.environment_id,
            component_name=self.component_name,
        )

    def resource_options(self, opts: Any | None = None) -> Any:
        """Merge caller resource options with this context.

        The enclosing component becomes the parent unless the caller set
        one; the caller's ``depends_on`` entries come first, followed by
        the resolved dependencies. The caller's options object is never
        mutated.
        """
        import pulumi

        merged = copy.copy(opts) if opts is not None else pulumi.ResourceOptions()

        if getattr(merged, "parent", None) is None and self.parent is not None:
            merged.parent = self.parent

        existing = getattr(merged, "depends_on", None)
        if existing is None:
            existing = []
        elif not isinstance(existing, (list, tuple)):
            existing = [existing]

        depends_on = list(existing)
        for dep in self.dependencies:
            if dep is not None and not any(dep is d for d in depends_on):
                depends_on.append(dep)
        merged.depends_on = depends_on or None
        return merged


ModuleFactory = Callable[[ModuleContext], Any]


@dataclass(frozen=True)
class ModuleDescriptor:
    """A factory plus its optional metadata.

    Built by caller code before orchestration and consumed exactly once
    per pass.
    """

    factory: ModuleFactory
    metadata: ModuleMetadata | None = None

    @property
    def is_legacy(self) -> bool:
        return self.metadata is None

    @property
    def name(self) -> str | None:
        return self.metadata.name if self.metadata else None

    @property
    def provides(self) -> list[str]:
        return list(self.metadata.provides) if self.metadata else []

    @property
    def requires(self) -> list[str]:
        return list(self.metadata.requires) if self.metadata else []

    @property
    def label(self) -> str:
        """Name used in log and error messages."""
        return self.name or "<anonymous>"

    def __call__(self, ctx: ModuleContext) -> Any:
        return self.factory(ctx)

    @classmethod
    def legacy(cls, fn: Callable[[], Any]) -> ModuleDescriptor:
        """Wrap a zero-argument callable as an untagged module."""
        return cls(factory=lambda _ctx: fn())


def define_module(
    metadata: ModuleMetadata | dict[str, Any],
    create: Callable[[Any, Any], Any],
) -> Callable[..., ModuleDescriptor]:
    """Declare a typed module.

    ``create(args, opts)`` builds the resources. The returned builder
    takes the module's arguments (and optional caller resource options)
    and yields a descriptor whose factory passes ``create`` options that
    already carry the parent component and resolved dependencies.

    Example::

        network = define_module(
            {"name": "network", "provides": [Capability.NETWORK]},
            lambda args, opts: gcp.compute.Network("vpc", opts=opts, **args),
        )
        modules = [network({"auto_create_subnetworks": False})]
    """
    meta = metadata if isinstance(metadata, ModuleMetadata) else ModuleMetadata.model_validate(metadata)

    def builder(args: Any = None, opts: Any = None) -> ModuleDescriptor:
        def factory(ctx: ModuleContext) -> Any:
            return create(args, ctx.resource_options(opts))

        return ModuleDescriptor(factory=factory, metadata=meta)

    builder.metadata = meta  # type: ignore[attr-defined]
    return builder


def as_descriptor(module: ModuleDescriptor | Callable[[], Any]) -> ModuleDescriptor:
    """Accept either a descriptor or a plain zero-argument callable."""
    if isinstance(module, ModuleDescriptor):
        return module
    if callable(module):
        return ModuleDescriptor.legacy(module)
    raise TypeError(f"Not a module: {module!r}")
