"""Tests for camera operations."""

import pytest

from flowgeom.geometry import to_screen, to_world, zoom_about
from flowgeom.models import MIN_ZOOM, BoundingBox, EntityType, Node, Point, Viewport
from flowgeom.viewport import (
    DetailLevel,
    autoscroll_delta,
    center_on_content,
    content_bounds,
    fit_to_content,
    scroll_by_wheel,
    visible_bounds,
    visible_node_ids,
    zoom_by_wheel,
)


def _node(node_id: str, x: float, y: float, entity: EntityType = EntityType.PROCESSOR) -> Node:
    return Node(id=node_id, type=entity, position=Point(x, y))


def test_zoom_anchor_example() -> None:
    vp = Viewport(0, 0, 1)
    assert to_world(100, 50, vp) == Point(100, 50)
    zoomed = zoom_about(vp, 2, 100, 50)
    assert (zoomed.pan_x, zoomed.pan_y) == (-100, -50)
    assert to_world(100, 50, zoomed) == Point(100, 50)


class TestContent:
    def test_bounds_ignore_anchors(self) -> None:
        nodes = [_node("a", 0, 0), _node("h", 5000, 5000, EntityType.ANCHOR)]
        assert content_bounds(nodes) == BoundingBox(0, 0, 180, 60)

    def test_empty(self) -> None:
        assert content_bounds([]) is None
        assert fit_to_content([], 800, 600) is None
        assert center_on_content([], Viewport(), 800, 600) is None

    def test_fit_centers_content(self) -> None:
        nodes = [_node("a", 0, 0), _node("b", 820, 340)]
        vp = fit_to_content(nodes, 1280, 720)
        center = to_screen(500, 200, vp)
        assert center.x == pytest.approx(640)
        assert center.y == pytest.approx(360)
        # 1000x400 content + 120 padding each side
        assert vp.zoom == pytest.approx(min(1256 / 1240, 696 / 640))

    def test_fit_inset_shrinks_available_frame(self) -> None:
        nodes = [_node("a", 0, 0), _node("b", 820, 340)]
        vp = fit_to_content(nodes, 1280, 720, inset=0)
        assert vp.zoom == pytest.approx(min(1280 / 1240, 720 / 640))
        wide = fit_to_content(nodes, 1280, 720, inset=104)
        assert wide.zoom == pytest.approx(min(1176 / 1240, 616 / 640))

    def test_fit_clamps_tiny_content_zoom(self) -> None:
        vp = fit_to_content([_node("a", 0, 0)], 100000, 100000)
        assert vp.zoom == 5.0

    def test_center_keeps_zoom(self) -> None:
        vp = center_on_content([_node("a", 0, 0)], Viewport(10, 10, 2), 800, 600)
        assert vp.zoom == 2
        center = to_screen(90, 30, vp)
        assert (center.x, center.y) == (400, 300)


class TestWheel:
    def test_scroll_down_zooms_out_about_pointer(self) -> None:
        vp = Viewport(0, 0, 1)
        out = zoom_by_wheel(vp, 120, 200, 100)
        assert out.zoom == pytest.approx(0.92)
        world = to_world(200, 100, out)
        assert world.x == pytest.approx(200)
        assert world.y == pytest.approx(100)

    def test_scroll_up_zooms_in(self) -> None:
        assert zoom_by_wheel(Viewport(), -1, 0, 0).zoom == pytest.approx(1.08)

    def test_zoom_never_below_minimum(self) -> None:
        vp = Viewport(zoom=MIN_ZOOM)
        assert zoom_by_wheel(vp, 1, 0, 0).zoom == MIN_ZOOM

    def test_wheel_scroll(self) -> None:
        assert scroll_by_wheel(Viewport(10, 20, 1.5), 5, -5) == Viewport(5, 25, 1.5)


def test_autoscroll() -> None:
    frame = BoundingBox(0, 0, 800, 600)
    assert autoscroll_delta(400, 300, frame) == (0, 0)
    dx, dy = autoscroll_delta(0, 300, frame)
    assert dx == pytest.approx(16)
    assert dy == 0
    dx, dy = autoscroll_delta(780, 590, frame)
    assert dx == pytest.approx(-8)
    assert dy == pytest.approx(-12)


class TestCulling:
    def test_visible_bounds(self) -> None:
        area = visible_bounds(Viewport(-100, 0, 2), 800, 600, padding=0)
        assert area == BoundingBox(50, 0, 400, 300)

    def test_visible_ids(self) -> None:
        nodes = [_node("near", 100, 100), _node("edge", 1400, 100), _node("far", 5000, 5000)]
        ids = visible_node_ids(nodes, Viewport(), 1280, 720)
        assert ids == {"near", "edge"}

    def test_keep_forces_visible(self) -> None:
        nodes = [_node("far", 5000, 5000)]
        assert visible_node_ids(nodes, Viewport(), 1280, 720, keep=["far"]) == {"far"}


class TestDetailLevel:
    def test_for_zoom(self) -> None:
        assert DetailLevel.for_zoom(1.0) == DetailLevel()
        low = DetailLevel.for_zoom(0.3)
        assert low.compact_nodes
        assert not low.show_node_meta
        assert not low.show_edge_labels

    def test_hysteresis(self) -> None:
        level = DetailLevel.for_zoom(1.0)
        level = level.update(0.59)
        assert not level.show_node_meta
        # Coming back up past the lower threshold is not enough.
        assert not level.update(0.62).show_node_meta
        assert level.update(0.65).show_node_meta

    def test_compact_hysteresis(self) -> None:
        level = DetailLevel.for_zoom(0.3)
        assert level.update(0.37).compact_nodes
        assert not level.update(0.4).compact_nodes
