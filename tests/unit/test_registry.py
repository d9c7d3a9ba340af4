"""
Unit tests for ConfigRegistry and Configuration handles.

Tests cover:
- One handle per domain, across threads
- Handle dispatch to the store
- Module-level default registry
"""

import threading

import pytest

from confstore.services.registry import (
    ConfigRegistry,
    Configuration,
    get_config,
    get_registry,
    init_registry,
)


class TestConfigRegistry:
    """Tests for ConfigRegistry."""

    def test_same_domain_same_handle(self, store):
        registry = ConfigRegistry(store)
        assert registry.get_config("domain-x") is registry.get_config("domain-x")
        assert registry.get_config("domain-x") is not registry.get_config("domain-y")

    def test_identity_across_threads(self, store):
        registry = ConfigRegistry(store)
        threads = 12
        barrier = threading.Barrier(threads)
        handles = []
        lock = threading.Lock()

        def fetch():
            barrier.wait()
            handle = registry.get_config("domain-x")
            with lock:
                handles.append(handle)

        workers = [threading.Thread(target=fetch) for _ in range(threads)]
        for w in workers:
            w.start()
        for w in workers:
            w.join(timeout=5)

        assert len(handles) == threads
        assert all(h is handles[0] for h in handles)
        assert registry.domains() == ["domain-x"]

    def test_module_level_registry(self, store):
        init_registry(store)

        assert get_config("billing") is get_registry().get_config("billing")

    def test_module_level_registry_requires_init(self):
        with pytest.raises(RuntimeError):
            get_config("billing")


class TestConfiguration:
    """Tests for Configuration handles."""

    def test_handle_is_immutable(self, store):
        handle = Configuration("svc", store)
        with pytest.raises(AttributeError):
            handle.domain = "other"

    def test_handle_dispatches_with_domain(self, store):
        handle = ConfigRegistry(store).get_config("svc")

        assert handle.set("mode", "blue") == "blue"
        handle.set("mode", "green")

        assert handle.get("mode", "none", count=2) == ["green", "blue"]
        assert handle.get_by_class("mode", str) == ["green"]
        assert handle.get("absent", "none") == ["none"]
        assert handle.put("mode", "red").version == 3
        assert [e.version for e in handle.get_entries("mode", count=3)] == [3, 2, 1]
        assert store.get_by_class("svc", "mode", str) == ["red"]

    def test_handle_register_type(self, store):
        class Percent:
            def __init__(self, value):
                self.value = value

        handle = ConfigRegistry(store).get_config("svc")
        handle.register_type(Percent, encoder=lambda p: p.value, decoder=Percent)

        handle.set("ratio", Percent(12))
        assert handle.get_by_class("ratio", Percent)[0].value == 12
