"""Tests for the observability classifier."""

import weakref
from collections import OrderedDict
from types import SimpleNamespace

from refractx import TargetKind, has_host_sentinel, is_composite, target_kind


class TestIsComposite:
    def test_primitives(self):
        for value in (None, 0, 1.5, True, 2j, "s", b"b"):
            assert not is_composite(value)

    def test_functions_and_classes(self):
        for value in (len, lambda: 0, [].append, dict, self.test_primitives):
            assert not is_composite(value)

    def test_composites(self):
        for value in ([], {}, set(), (), SimpleNamespace(), object()):
            assert is_composite(value)


class TestTargetKind:
    def test_plain_kinds(self):
        assert target_kind(SimpleNamespace()) is TargetKind.COMMON
        assert target_kind([]) is TargetKind.COMMON

    def test_collection_kinds(self):
        assert target_kind({}) is TargetKind.COLLECTION
        assert target_kind(set()) is TargetKind.COLLECTION
        assert target_kind(weakref.WeakKeyDictionary()) is TargetKind.COLLECTION
        assert target_kind(weakref.WeakSet()) is TargetKind.COLLECTION

    def test_exact_type_only(self):
        class Tagged(list):
            pass

        assert target_kind(Tagged()) is TargetKind.INVALID
        assert target_kind(OrderedDict()) is TargetKind.INVALID
        assert target_kind(frozenset()) is TargetKind.INVALID
        assert target_kind(5) is TargetKind.INVALID


class TestHostSentinel:
    def test_default_names(self):
        assert has_host_sentinel(SimpleNamespace(_is_host_component=True))
        assert has_host_sentinel(SimpleNamespace(_is_host_node=1))
        assert not has_host_sentinel(SimpleNamespace(_is_host_node=False))
        assert not has_host_sentinel({"_is_host_node": True})

    def test_custom_names(self):
        node = SimpleNamespace(is_vnode=True)
        assert has_host_sentinel(node, names=("is_vnode",))
        assert not has_host_sentinel(node)
