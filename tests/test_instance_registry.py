"""Tests for the in-memory instance ownership registry."""

from evogate.infra.instance_registry import InstanceRegistry


def test_register_and_owner():
    registry = InstanceRegistry()
    registry.register("shop", "tenant-a")

    assert registry.owner_of("shop") == "tenant-a"
    assert registry.owner_of("unknown") is None


def test_forget():
    registry = InstanceRegistry()
    registry.register("shop", "tenant-a")
    registry.forget("shop")
    registry.forget("never-registered")

    assert registry.owner_of("shop") is None


def test_list_for_tenant_in_creation_order():
    registry = InstanceRegistry()
    registry.register("one", "tenant-a")
    registry.register("other", "tenant-b")
    registry.register("two", "tenant-a")

    assert [r.instance for r in registry.list_for("tenant-a")] == ["one", "two"]
