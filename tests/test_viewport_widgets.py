from __future__ import annotations

import asyncio
import logging

import ipywidgets as widgets
import pytest

from viewport_detector import (
    LayoutRectangle,
    LayoutRegistry,
    MeasurementError,
    MonitorState,
    ViewportDetector,
    ViewportDetectorProvider,
    ViewportProbe,
    display_surface,
)


def _answer_with(probe: ViewportProbe, **geometry) -> list[dict]:
    """Make ``probe.send`` reply like the frontend would, on the next loop turn."""
    sent: list[dict] = []

    def _fake_send(content, buffers=None):
        sent.append(content)
        reply = {"type": "measurement", "request_id": content["request_id"], **geometry}
        asyncio.get_running_loop().call_soon(probe._handle_custom_msg, probe, reply, [])

    probe.send = _fake_send
    return sent


def test_probe_measure_resolves_from_frontend_reply() -> None:
    probe = ViewportProbe()
    sent = _answer_with(probe, x=0, y=0, width=40, height=30, page_x=5, page_y=6)

    measurement = asyncio.run(probe.measure())

    assert sent[0]["type"] == "measure"
    assert measurement.to_rectangle() == LayoutRectangle(5, 6, 40, 30)
    assert probe._pending == {}


def test_probe_measure_times_out_without_frontend() -> None:
    probe = ViewportProbe(measure_timeout_ms=20)
    probe.send = lambda content, buffers=None: None

    with pytest.raises(MeasurementError, match="No measurement from frontend"):
        asyncio.run(probe.measure())
    assert probe._pending == {}


def test_probe_ignores_unmatched_replies() -> None:
    probe = ViewportProbe()
    probe._handle_custom_msg(probe, {"type": "measurement", "request_id": "nope"}, [])
    probe._handle_custom_msg(probe, "not a dict", [])


def test_probe_close_fails_pending_measurement() -> None:
    probe = ViewportProbe(measure_timeout_ms=5000)
    probe.send = lambda content, buffers=None: asyncio.get_running_loop().call_soon(probe.close)

    with pytest.raises(MeasurementError, match="closed"):
        asyncio.run(probe.measure())


def test_probe_forwards_layout_reports(caplog) -> None:
    probe = ViewportProbe()
    seen: list[LayoutRectangle] = []
    probe.on_layout(seen.append)

    probe._handle_custom_msg(probe, {"type": "layout", "x": 1, "y": 2, "width": 3, "height": 4}, [])
    with caplog.at_level(logging.WARNING, logger="viewport_detector.ViewportProbe"):
        probe._handle_custom_msg(probe, {"type": "layout", "x": 1}, [])

    assert seen == [LayoutRectangle(1, 2, 3, 4)]
    assert "malformed layout report" in caplog.text


def test_probe_window_size_updates_display_surface() -> None:
    surface = display_surface()
    old = surface.size
    try:
        probe = ViewportProbe()
        probe.window_width = 1000
        probe.window_height = 700
        assert surface.size == (1000.0, 700.0)
    finally:
        surface.set_size(*old)


def test_provider_publishes_layout_into_registry() -> None:
    provider = ViewportDetectorProvider(widgets.Label("x"), height="400px")

    provider.probe._handle_custom_msg(
        provider.probe, {"type": "layout", "x": 0, "y": 100, "width": 300, "height": 400}, []
    )
    provider.probe._handle_custom_msg(
        provider.probe, {"type": "layout", "x": 0, "y": 100, "width": 0, "height": 400}, []
    )

    assert provider.registry.read() == LayoutRectangle(0, 100, 300, 400)
    assert provider.widget.layout.height == "400px"
    assert provider.probe in provider.widget.children

    provider.close()
    assert provider.registry.read() is None


def test_detectors_bind_to_innermost_provider() -> None:
    outer = ViewportDetectorProvider(widgets.VBox())
    inner = ViewportDetectorProvider(widgets.HBox())
    explicit = LayoutRegistry()

    with outer:
        a = ViewportDetector(widgets.Label("a"), lambda _v: None, start_immediately=False)
        with inner:
            b = ViewportDetector(widgets.Label("b"), lambda _v: None, start_immediately=False)
            c = ViewportDetector(
                widgets.Label("c"), lambda _v: None, provider=explicit, start_immediately=False
            )
    d = ViewportDetector(widgets.Label("d"), lambda _v: None, start_immediately=False)

    assert a.monitor.registry is outer.registry
    assert b.monitor.registry is inner.registry
    assert c.monitor.registry is explicit
    assert d.monitor.registry is None


def test_detector_reports_visibility_against_provider() -> None:
    calls: list[bool] = []
    provider = ViewportDetectorProvider(widgets.VBox())
    provider.registry.write(LayoutRectangle(0, 100, 300, 400))
    detector = ViewportDetector(
        widgets.Label("item"), calls.append, provider=provider,
        percent_height=0.7, start_immediately=False, margin="4px",
    )
    assert detector.widget.layout.margin == "4px"

    async def main() -> list:
        results = []
        _answer_with(detector.probe, x=0, y=0, width=300, height=100, page_x=0, page_y=420)
        results.append(await detector.monitor.check())
        _answer_with(detector.probe, x=0, y=0, width=300, height=100, page_x=0, page_y=450)
        results.append(await detector.monitor.check())
        return results

    # 80% then 50% of the item's height lies inside the provider.
    assert asyncio.run(main()) == [True, False]
    assert calls == [True, False]


def test_detector_first_layout_rearms_and_close_destroys() -> None:
    detector = ViewportDetector(widgets.Label("x"), lambda _v: None, start_immediately=False)
    notified = []
    detector.monitor.notify_layout = lambda: notified.append(True)

    detector.probe._handle_custom_msg(
        detector.probe, {"type": "layout", "x": 0, "y": 0, "width": 10, "height": 10}, []
    )
    assert notified == [True]
    assert detector.probe.report_layout is False

    detector.close()
    assert detector.monitor.state is MonitorState.DESTROYED


def test_detector_without_provider_follows_reported_window_size() -> None:
    surface = display_surface()
    old = surface.size
    try:
        surface.set_size(1280, 800)
        calls: list[bool] = []
        detector = ViewportDetector(widgets.Label("x"), calls.append, start_immediately=False)

        # The frontend reports the real window only after the widget renders.
        detector.probe.window_width = 1920
        detector.probe.window_height = 1080

        async def main():
            _answer_with(detector.probe, x=0, y=0, width=200, height=100, page_x=1500, page_y=900)
            return await detector.monitor.check()

        assert asyncio.run(main()) is True
        assert calls == [True]
        assert detector.monitor.container_rectangle() == LayoutRectangle(0, 0, 1920, 1080)
    finally:
        surface.set_size(*old)
