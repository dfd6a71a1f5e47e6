"""Tests for the widget instance registry."""

import pytest

from commentkit.widget.registry import WidgetHandle, WidgetRegistry


class TestWidgetRegistry:
    def test_register_and_get(self):
        registry: WidgetRegistry[str] = WidgetRegistry()
        first = registry.register("first")
        second = registry.register("second")

        assert registry.get(first) == "first"
        assert registry.get(second) == "second"
        assert len(registry) == 2

    def test_removed_handle_is_stale(self):
        registry: WidgetRegistry[str] = WidgetRegistry()
        handle = registry.register("gone")

        assert registry.remove(handle) == "gone"
        assert handle not in registry
        with pytest.raises(KeyError):
            registry.get(handle)
        with pytest.raises(KeyError):
            registry.remove(handle)

    def test_slot_reuse_does_not_revive_old_handle(self):
        registry: WidgetRegistry[str] = WidgetRegistry()
        old = registry.register("old")
        registry.remove(old)
        new = registry.register("new")

        assert new.index == old.index
        assert new.generation != old.generation
        assert registry.get(new) == "new"
        with pytest.raises(KeyError):
            registry.get(old)

    def test_foreign_handle(self):
        registry: WidgetRegistry[str] = WidgetRegistry()
        with pytest.raises(KeyError):
            registry.get(WidgetHandle(3, 0))
        assert "not a handle" not in registry

    def test_iteration_skips_free_slots(self):
        registry: WidgetRegistry[str] = WidgetRegistry()
        a = registry.register("a")
        b = registry.register("b")
        registry.remove(a)

        assert list(registry) == [(b, "b")]
        assert len(registry) == 1

    def test_falsy_widgets_are_live(self):
        registry: WidgetRegistry[int] = WidgetRegistry()
        handle = registry.register(0)

        assert handle in registry
        assert registry.get(handle) == 0
        assert registry.remove(handle) == 0
        assert handle not in registry
