"""Session lifecycle tests: ending a session, scoped sessions and registry isolation."""

import pytest

import pyforeign
from pyforeign import HandleRegistry, LazyModuleProxy, StaleHandleError
from pyforeign._internal.runtime_registry import RuntimeRegistry
from pyforeign._internal.stringifier_registry import StringifierRegistry

from .fixtures.reference_runtime import CountingRuntime


class TestEndSession:
    def test_end_session_invalidates_and_shuts_down(self, runtime):
        proxy = LazyModuleProxy("foo")
        assert runtime.is_started()

        swept = pyforeign.end_session()

        assert swept == 1
        assert not runtime.is_started()
        assert runtime.count("shutdown") == 1
        with pytest.raises(StaleHandleError):
            proxy.get("bar")

    def test_new_proxies_work_in_next_session(self, runtime):
        first = LazyModuleProxy("foo")
        first_session = first.handle.session_id
        pyforeign.end_session()

        second = LazyModuleProxy("foo")

        assert second.get("bar") == 42
        assert second.handle.session_id != first_session

    def test_end_session_without_runtime_is_harmless(self):
        assert pyforeign.end_session() == 0


class TestRuntimeSession:
    def test_session_scope_invalidates_on_exit(self):
        runtime = CountingRuntime({"foo": {"bar": 1}})

        with pyforeign.runtime_session(runtime) as active:
            assert active is runtime
            assert runtime.is_started()
            proxy = LazyModuleProxy("foo")
            assert proxy.get("bar") == 1

        assert not runtime.is_started()
        assert pyforeign.is_null_handle(proxy)

    def test_session_scope_invalidates_on_exception(self):
        runtime = CountingRuntime({"foo": {"bar": 1}})

        with pytest.raises(ValueError):
            with pyforeign.runtime_session(runtime):
                proxy = LazyModuleProxy("foo")
                raise ValueError("boom")

        assert proxy.handle is None


class TestRuntimeSelection:
    def test_switching_before_start_is_allowed(self):
        first = CountingRuntime(identifier="first")
        second = CountingRuntime({"foo": {"bar": 2}}, identifier="second")

        pyforeign.use_runtime(first)
        proxy = LazyModuleProxy("foo", delay_load=True)
        pyforeign.use_runtime(second)

        assert proxy.get("bar") == 2
        assert first.calls == []

    def test_switching_after_start_is_rejected(self, runtime):
        LazyModuleProxy("foo")

        with pytest.raises(RuntimeError, match="already started"):
            pyforeign.use_runtime(CountingRuntime(identifier="other"))

    def test_switching_after_end_session_is_allowed(self, runtime):
        LazyModuleProxy("foo")
        pyforeign.end_session()

        other = CountingRuntime(identifier="other")
        pyforeign.use_runtime(other)

        assert pyforeign.get_runtime() is other

    def test_reregistering_same_runtime_is_idempotent(self, runtime):
        LazyModuleProxy("foo")

        pyforeign.use_runtime(runtime)

        assert RuntimeRegistry.get() is runtime

    def test_get_required_without_runtime_raises(self):
        with pytest.raises(RuntimeError, match="No foreign runtime registered"):
            RuntimeRegistry.get_required()


class TestRegistryScope:
    def test_scope_starts_empty_and_restores(self, runtime):
        outer_registry = HandleRegistry.get_instance()
        outer_proxy = LazyModuleProxy("foo")

        with pyforeign.registry_scope():
            assert RuntimeRegistry.get() is None
            assert HandleRegistry.get_instance() is not outer_registry
            assert not StringifierRegistry.get_instance().has_handler("module")

        assert RuntimeRegistry.get() is runtime
        assert HandleRegistry.get_instance() is outer_registry
        assert outer_proxy.get("bar") == 42

    def test_scope_cleans_up_on_exit(self):
        inner_runtime = CountingRuntime({"foo": {"bar": 1}})

        with pyforeign.registry_scope():
            pyforeign.use_runtime(inner_runtime)
            proxy = LazyModuleProxy("foo")

        assert proxy.handle is None
        assert not inner_runtime.is_started()
        assert RuntimeRegistry.get() is None
