from __future__ import annotations

import logging
import queue
import threading

import pytest

from viewport_detector.display import DisplaySurface
from viewport_detector.geometry import LayoutRectangle
from viewport_detector.layout_registry import LayoutRegistry, current_registry, use_registry


def test_latest_write_wins() -> None:
    registry = LayoutRegistry()
    assert registry.read() is None

    assert registry.write(LayoutRectangle(0, 0, 100, 100))
    assert registry.write(LayoutRectangle(0, 50, 300, 200))
    assert registry.read() == LayoutRectangle(0, 50, 300, 200)


def test_degenerate_layouts_keep_previous_value(caplog) -> None:
    registry = LayoutRegistry("scroller", initial=LayoutRectangle(0, 0, 100, 100))

    with caplog.at_level(logging.DEBUG, logger="viewport_detector.layout_registry"):
        assert not registry.write(LayoutRectangle(0, 0, 0, 100))
        assert not registry.write(LayoutRectangle(0, 0, 100, -1))

    assert registry.read() == LayoutRectangle(0, 0, 100, 100)
    assert "Rejecting degenerate layout" in caplog.text


def test_closed_registry_reads_none_and_ignores_writes() -> None:
    registry = LayoutRegistry(initial=LayoutRectangle(0, 0, 10, 10))
    registry.close()

    assert registry.closed
    assert registry.read() is None
    assert not registry.write(LayoutRectangle(0, 0, 20, 20))
    assert "closed" in repr(registry)


def test_nested_scopes_resolve_innermost() -> None:
    outer = LayoutRegistry("outer")
    inner = LayoutRegistry("inner")

    assert current_registry() is None
    with outer:
        assert current_registry() is outer
        with use_registry(inner):
            assert current_registry() is inner
        assert current_registry() is outer
    assert current_registry() is None


def test_current_registry_required_raises_without_scope() -> None:
    with pytest.raises(RuntimeError, match="No active LayoutRegistry"):
        current_registry(required=True)


def test_closing_registry_removes_it_from_scope() -> None:
    outer = LayoutRegistry("outer")
    inner = LayoutRegistry("inner")
    with outer:
        with inner:
            inner.close()
            assert current_registry() is outer


def test_current_registry_is_isolated_per_thread() -> None:
    main = LayoutRegistry("main")
    other = LayoutRegistry("other")
    q: queue.Queue[object] = queue.Queue()

    def _worker() -> None:
        q.put(current_registry())
        with other:
            q.put(current_registry())

    with main:
        t = threading.Thread(target=_worker)
        t.start()
        t.join()
        assert q.get(timeout=1) is None
        assert q.get(timeout=1) is other
        assert current_registry() is main


def test_display_surface_ignores_non_positive_sizes() -> None:
    surface = DisplaySurface(800, 600)
    assert surface.rectangle() == LayoutRectangle(0, 0, 800, 600)

    assert not surface.set_size(0, 600)
    assert surface.set_size(1024, 768)
    assert surface.size == (1024.0, 768.0)
