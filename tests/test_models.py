"""
Tests for domain models: metadata, contexts, descriptors, receipts, errors.
"""

import time
from unittest.mock import MagicMock

import pulumi
import pytest
from pydantic import ValidationError

from nebula.core.errors import StackOperationError
from nebula.core.models import (
    Capability,
    ModuleContext,
    ModuleDescriptor,
    ModuleMetadata,
    Operation,
    OperationReceipt,
    ResourceNode,
    as_descriptor,
    capability_key,
    define_module,
)

from tests.fakes import command_error


class TestModuleMetadata:
    def test_enum_capabilities_normalised(self):
        meta = ModuleMetadata(name="gke", provides=[Capability.CLUSTER, "kubeconfig"], requires=[Capability.NETWORK])
        assert meta.provides == ["cluster", "kubeconfig"]
        assert meta.requires == ["network"]

    def test_single_capability_accepted(self):
        meta = ModuleMetadata.model_validate({"name": "dns", "provides": Capability.DNS})
        assert meta.provides == ["dns"]

    def test_name_required(self):
        with pytest.raises(ValidationError):
            ModuleMetadata.model_validate({"provides": ["x"]})

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            ModuleMetadata(name="  ")

    def test_capability_key(self):
        assert capability_key(Capability.CERT_MANAGER_CRDS) == "cert-manager-crds"
        assert capability_key("custom") == "custom"
        assert Capability.NETWORK == "network"


class TestModuleDescriptor:
    def test_legacy_properties(self):
        desc = ModuleDescriptor(factory=lambda ctx: None)
        assert desc.is_legacy
        assert desc.name is None
        assert desc.provides == []
        assert desc.label == "<anonymous>"

    def test_tagged_properties(self):
        desc = ModuleDescriptor(factory=lambda ctx: None, metadata=ModuleMetadata(name="db", provides=["db"]))
        assert not desc.is_legacy
        assert desc.name == "db"
        assert desc.provides == ["db"]

    def test_as_descriptor_wraps_callable(self):
        desc = as_descriptor(lambda: 42)
        assert desc.is_legacy
        assert desc(ModuleContext()) == 42

    def test_as_descriptor_rejects_garbage(self):
        with pytest.raises(TypeError):
            as_descriptor(42)


class TestResourceOptions:
    def test_parent_and_dependencies_applied(self):
        parent, dep = object(), object()
        opts = ModuleContext(dependencies=[dep], parent=parent).resource_options()
        assert opts.parent is parent
        assert opts.depends_on == [dep]

    def test_caller_parent_wins(self):
        mine, ctx_parent = object(), object()
        opts = ModuleContext(parent=ctx_parent).resource_options(pulumi.ResourceOptions(parent=mine))
        assert opts.parent is mine

    def test_caller_depends_on_first(self):
        caller_dep = MagicMock(spec=pulumi.Resource)
        resolved = MagicMock(spec=pulumi.Resource)
        original = pulumi.ResourceOptions(depends_on=[caller_dep])
        opts = ModuleContext(dependencies=[resolved, caller_dep]).resource_options(original)
        assert opts.depends_on == [caller_dep, resolved]
        assert original.depends_on == [caller_dep]

    def test_single_caller_dependency_listed(self):
        caller_dep = MagicMock(spec=pulumi.Resource)
        resolved = MagicMock(spec=pulumi.Resource)
        opts = ModuleContext(dependencies=[resolved]).resource_options(pulumi.ResourceOptions(depends_on=caller_dep))
        assert opts.depends_on == [caller_dep, resolved]

    def test_no_dependencies_leaves_depends_on_unset(self):
        opts = ModuleContext().resource_options()
        assert opts.depends_on is None
        assert opts.parent is None


class TestDefineModule:
    def test_builder_passes_merged_options(self):
        seen = {}

        def create(args, opts):
            seen["args"] = args
            seen["opts"] = opts
            return "vpc"

        network = define_module({"name": "network", "provides": [Capability.NETWORK]}, create)
        desc = network({"cidr": "10.0.0.0/16"})

        dep, parent = object(), object()
        result = desc(ModuleContext(dependencies=[dep], parent=parent))

        assert result == "vpc"
        assert desc.name == "network"
        assert desc.provides == ["network"]
        assert seen["args"] == {"cidr": "10.0.0.0/16"}
        assert seen["opts"].parent is parent
        assert seen["opts"].depends_on == [dep]
        assert network.metadata.name == "network"


class TestResourceNode:
    def test_from_state(self):
        node = ResourceNode.from_state(
            {
                "urn": "urn:pulumi:dev::p::nebula:component::network",
                "type": "nebula:component",
                "custom": False,
                "parent": "urn:pulumi:dev::p::pulumi:pulumi:Stack::p-dev",
            }
        )
        assert node is not None
        assert node.name == "network"
        assert node.is_composite
        assert node.parent_urn.endswith("p-dev")
        assert node.label.startswith("[C]")

    def test_custom_resource_not_composite(self):
        node = ResourceNode.from_state({"urn": "urn:a::b", "type": "gcp:x", "custom": True})
        assert not node.is_composite

    def test_missing_custom_not_composite(self):
        node = ResourceNode.from_state({"urn": "urn:a::b", "type": "gcp:x"})
        assert not node.is_composite

    def test_incomplete_entry(self):
        assert ResourceNode.from_state({"type": "x"}) is None


class TestOperationReceipt:
    def test_success(self):
        r = OperationReceipt.record("dev-net", Operation.UP, time.monotonic())
        assert r.ok
        assert not r.failed
        assert r.operation == "up"
        assert r.summary == "up on whole stack"
        assert r.duration_ms >= 0

    def test_failure(self):
        r = OperationReceipt.record("dev-net", Operation.DESTROY, time.monotonic(), error="locked")
        assert r.failed
        assert r.error == "locked"

    def test_targeted_summary(self):
        r = OperationReceipt.record("dev-net", Operation.PREVIEW, time.monotonic(), targets=["urn:a", "urn:b"])
        assert r.summary == "preview on 2 target(s)"
        assert r.targets == ["urn:a", "urn:b"]

    def test_json_dump(self):
        data = OperationReceipt.record("dev-net", Operation.REFRESH, time.monotonic()).model_dump(mode="json")
        assert data["operation"] == "refresh"
        assert isinstance(data["finished_at"], str)

    def test_operation_parse(self):
        assert Operation.parse("UP") is Operation.UP
        assert Operation.parse(" refresh ") is Operation.REFRESH
        assert Operation.parse("deploy") is None
        assert Operation.parse(None) is None


class TestStackOperationError:
    def test_from_command_error(self):
        err = StackOperationError.from_exception(
            "dev-net", "up", command_error("e" * 900 + "\nerror: update failed", code=2, stdout="o" * 900)
        )
        assert err.exit_code == 2
        assert err.message == "error: update failed"
        assert len(err.stdout) == 500
        assert len(err.stderr) == 500
        assert "[dev-net] up failed" in str(err)
        assert "Error code: 2" in str(err)

    def test_large_engine_output_stays_capped(self):
        err = StackOperationError.from_exception(
            "dev-net", "up", command_error("lock held " + "x" * 5000, code=255, stdout="x" * 5000)
        )
        assert err.exit_code == 255
        assert err.stderr.startswith("lock held")
        assert len(err.message) <= 500
        assert len(str(err)) < 2000

    def test_command_text_parsed(self):
        text = "\n code: 7\n stdout: planning\n stderr: error: quota exceeded"
        err = StackOperationError.from_exception("dev-net", "preview", RuntimeError(text))
        assert err.exit_code == 7
        assert err.stdout == "planning"
        assert err.message == "error: quota exceeded"

    def test_plain_exception_unknown_code(self):
        err = StackOperationError.from_exception("dev-net", "preview", RuntimeError())
        assert err.exit_code == "unknown"
        assert err.message == "RuntimeError"
        assert "Stderr" not in str(err)

    def test_plain_message_capped(self):
        err = StackOperationError.from_exception("dev-net", "preview", RuntimeError("y" * 2000))
        assert len(err.message) == 500
