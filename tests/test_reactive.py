"""Tests for observe/observe_readonly canonicalization and the marking API."""

import logging
import threading
import weakref
from types import SimpleNamespace

from refractx import (
    CollectionHandlers,
    ObservationContext,
    Observed,
    PlainHandlers,
    current_context,
    is_observed,
    is_readonly,
    mark_non_observable,
    mark_readonly,
    observe,
    observe_readonly,
    to_raw,
    use_context,
)


class TestObserve:
    def test_idempotent(self):
        raw = {"a": 1}
        assert observe(raw) is observe(raw)

    def test_round_trip(self):
        raw = [1, 2, 3]
        assert to_raw(observe(raw)) is raw
        assert to_raw(observe_readonly(raw)) is raw

    def test_no_double_wrap(self):
        observed = observe(SimpleNamespace(x=1))
        assert observe(observed) is observed

    def test_modes_are_distinct_wrappers(self):
        raw = {"a": 1}
        assert observe(raw) is not observe_readonly(raw)

    def test_returns_observed(self):
        assert isinstance(observe([]), Observed)

    def test_seeds_dependency_entry(self, ctx):
        raw = {"a": 1}
        observed = observe(raw)
        assert ctx.dependencies(raw) == {}
        assert ctx.dependencies(observed) is ctx.dependencies(raw)

    def test_dependency_entry_shared_across_modes(self, ctx):
        raw = [1]
        observe(raw)
        entry = ctx.dependencies(raw)
        entry["length"] = {"subscriber"}
        observe_readonly(raw)
        assert ctx.dependencies(raw) is entry


class TestModePrecedence:
    def test_readonly_wrapper_is_not_escalated(self):
        ro = observe_readonly({"a": 1})
        assert observe(ro) is ro

    def test_readonly_of_mutable_unwraps(self):
        raw = {"a": 1}
        ro = observe_readonly(observe(raw))
        assert is_readonly(ro)
        assert to_raw(ro) is raw
        assert ro is observe_readonly(raw)

    def test_readonly_of_readonly(self):
        ro = observe_readonly([1])
        assert observe_readonly(ro) is ro


class TestPassThrough:
    def test_primitives(self):
        assert observe(5) == 5
        assert observe("text") == "text"
        assert observe(None) is None
        assert observe_readonly(True) is True

    def test_primitive_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="refractx.reactive"):
            observe(5)
        assert "cannot be made observable" in caplog.text

    def test_function_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="refractx.reactive"):
            assert observe(len) is len
            assert observe_readonly(dict) is dict
        assert caplog.text.count("cannot be made observable") == 2

    def test_ineligible_container_is_silent(self, caplog):
        t = (1, 2)
        with caplog.at_level(logging.WARNING, logger="refractx.reactive"):
            assert observe(t) is t
        assert caplog.text == ""

    def test_warning_disabled(self, caplog):
        with use_context(ObservationContext(warn=False)):
            with caplog.at_level(logging.WARNING, logger="refractx.reactive"):
                assert observe(5) == 5
        assert caplog.text == ""

    def test_non_observable_mark(self):
        raw = {"a": 1}
        assert mark_non_observable(raw) is raw
        assert observe(raw) is raw
        assert observe_readonly(raw) is raw
        assert not is_observed(raw)

    def test_custom_class_is_ineligible(self):
        class Point:
            pass

        p = Point()
        assert observe(p) is p

    def test_subclass_is_ineligible(self):
        class MyDict(dict):
            pass

        d = MyDict()
        assert observe(d) is d

    def test_tuple_is_ineligible(self):
        t = (1, 2)
        assert observe(t) is t

    def test_host_sentinel(self):
        node = SimpleNamespace(_is_host_node=True)
        assert observe(node) is node

    def test_custom_host_predicate(self):
        with use_context(ObservationContext(is_host_internal=lambda v: isinstance(v, list))):
            lst = [1]
            assert observe(lst) is lst
            assert is_observed(observe({}))

    def test_no_mark_for_primitives(self, ctx, caplog):
        with caplog.at_level(logging.WARNING, logger="refractx.reactive"):
            assert mark_readonly(5) == 5
        assert "cannot be marked" in caplog.text
        assert len(ctx.readonly_values) == 0


class TestForcedReadonly:
    def test_observe_returns_readonly(self):
        raw = {"a": 1}
        assert mark_readonly(raw) is raw
        observed = observe(raw)
        assert is_readonly(observed)
        assert observed is observe_readonly(raw)

    def test_mark_is_fluent(self):
        observed = observe(mark_readonly([1, 2]))
        assert is_readonly(observed)


class TestPredicates:
    def test_is_observed(self):
        raw = [1]
        assert not is_observed(raw)
        assert is_observed(observe(raw))
        assert is_observed(observe_readonly(raw))

    def test_is_readonly(self):
        raw = [1]
        assert not is_readonly(observe(raw))
        assert is_readonly(observe_readonly(raw))
        assert not is_readonly(raw)

    def test_to_raw_on_raw_value(self):
        raw = {"a": 1}
        assert to_raw(raw) is raw
        assert to_raw(5) == 5

    def test_can_observe(self, ctx):
        assert ctx.can_observe({})
        assert ctx.can_observe([])
        assert ctx.can_observe(set())
        assert ctx.can_observe(SimpleNamespace())
        assert ctx.can_observe(weakref.WeakSet())
        assert ctx.can_observe(weakref.WeakKeyDictionary())
        assert not ctx.can_observe(5)
        assert not ctx.can_observe(frozenset())


class TestHandlerRouting:
    def _recording_context(self):
        seen = []

        class Plain(PlainHandlers):
            def track(self, target, key):
                seen.append(("plain", key))

        class Collection(CollectionHandlers):
            def track(self, target, key):
                seen.append(("collection", key))

        return ObservationContext(plain=Plain, collection=Collection), seen

    def test_plain_kinds(self):
        context, seen = self._recording_context()
        context.observe(SimpleNamespace(x=1)).x
        context.observe([10, 20])[1]
        assert seen == [("plain", "x"), ("plain", 1)]

    def test_collection_kinds(self):
        context, seen = self._recording_context()
        context.observe({"k": 1})["k"]
        assert 3 in context.observe({3})
        assert seen == [("collection", "k"), ("collection", 3)]

    def test_readonly_uses_readonly_handlers(self):
        context, _ = self._recording_context()
        ro = context.observe_readonly({"k": 1})
        ro["k"] = 2
        assert context.is_readonly(ro)
        assert context.to_raw(ro) == {"k": 1}


class TestConcurrency:
    def test_threads_share_one_wrapper(self, ctx):
        raw = {"a": 1}
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(ctx.observe(raw))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 8
        assert all(r is results[0] for r in results)


class TestContexts:
    def test_contexts_are_isolated(self, ctx):
        raw = {"a": 1}
        other = ObservationContext()
        assert observe(raw) is not other.observe(raw)
        assert not other.is_observed(observe(raw))

    def test_use_context_restores(self, ctx):
        inner = ObservationContext()
        with use_context(inner):
            assert current_context() is inner
        assert current_context() is ctx
