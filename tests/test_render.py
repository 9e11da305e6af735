import unittest
import xml.etree.ElementTree as ET

from venue_layout.editor import Selection
from venue_layout.generation import regenerate_section_seats
from venue_layout.layout import Layout
from venue_layout.models import Seat, SeatStatus, Section, TicketType
from venue_layout.render import (
    DEFAULT_SEAT_COLOR,
    HIGHLIGHT_COLOR,
    STATUS_COLORS,
    RendererKind,
    RendererSelector,
    SceneGraphRenderer,
    VectorRenderer,
    VisibilityCache,
    choose_renderer,
    seat_fill,
)
from venue_layout.viewport import Viewport


SVG = "{http://www.w3.org/2000/svg}"


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _layout() -> Layout:
    layout = Layout(ticket_types=[TicketType(id="vip", name="VIP", price=90, color="#f59e0b")])
    sec = layout.add_section(Section(x=50, y=50, width=300, height=200, rows=2, seats_per_row=4))
    regenerate_section_seats(layout, sec.id, "vip")
    layout.add_seat(Seat(x=2000, y=2000, ticket_type_id="vip"))
    return layout


class TestViewport(unittest.TestCase):
    def test_round_trip_and_zoom_about_pointer(self):
        vp = Viewport(scale=2, offset_x=10, offset_y=-5)
        p = vp.to_screen((30, 40))
        self.assertEqual(vp.to_world(p), (30, 40))

        before = vp.to_world((200, 100))
        vp.zoom(3, pointer=(200, 100))
        after = vp.to_world((200, 100))
        self.assertAlmostEqual(before.x, after.x)
        self.assertAlmostEqual(before.y, after.y)

    def test_scale_is_clamped(self):
        vp = Viewport()
        vp.zoom(100)
        self.assertEqual(vp.scale, vp.max_scale)
        vp.zoom(0)
        self.assertEqual(vp.scale, vp.min_scale)

    def test_zoom_to_fit(self):
        vp = Viewport(width=840, height=640)
        vp.zoom_to_fit(1600, 600)
        self.assertAlmostEqual(vp.scale, 0.5)
        self.assertEqual(vp.world_bounds(), (0, 0, 1680, 1280))


class TestColours(unittest.TestCase):
    def test_seat_fill(self):
        layout = _layout()
        seat = layout.seats[0]
        self.assertEqual(seat_fill(seat, layout), "#f59e0b")
        self.assertEqual(seat_fill(seat, layout, selected=True), HIGHLIGHT_COLOR)
        sold = seat.model_copy(update={"status": SeatStatus.sold})
        self.assertEqual(seat_fill(sold, layout), STATUS_COLORS[SeatStatus.sold])
        self.assertEqual(seat_fill(Seat(), layout), DEFAULT_SEAT_COLOR)


class TestVisibilityCache(unittest.TestCase):
    def test_culls_to_viewport(self):
        layout = _layout()
        cache = VisibilityCache(clock=FakeClock())
        visible = cache.visible(layout, Viewport())
        self.assertEqual(len(visible.sections), 1)
        self.assertEqual(len(visible.seats), 8)

    def test_throttled_until_interval_or_invalidate(self):
        layout = _layout()
        clock = FakeClock()
        cache = VisibilityCache(interval=0.15, clock=clock)
        vp = Viewport()
        cache.visible(layout, vp)
        self.assertEqual(cache.recomputations, 1)

        vp.pan(-1800, -1800)
        clock.now += 0.05
        self.assertEqual(len(cache.visible(layout, vp).seats), 8)
        self.assertEqual(cache.recomputations, 1)

        clock.now += 0.2
        self.assertEqual(len(cache.visible(layout, vp).seats), 1)
        self.assertEqual(cache.recomputations, 2)

        vp.reset()
        cache.invalidate()
        self.assertEqual(len(cache.visible(layout, vp).seats), 8)
        self.assertEqual(cache.recomputations, 3)

    def test_layout_change_recomputes_immediately(self):
        layout = _layout()
        cache = VisibilityCache(clock=FakeClock())
        vp = Viewport()
        cache.visible(layout, vp)
        layout.add_seat(Seat(x=10, y=10))
        self.assertEqual(len(cache.visible(layout, vp).seats), 9)


class TestRenderers(unittest.TestCase):
    def test_vector_renderer_emits_visible_items(self):
        layout = _layout()
        first = layout.seats[0]
        svg = VectorRenderer(VisibilityCache(clock=FakeClock())).render(
            layout, Viewport(), Selection(seat_ids={first.id: None})
        )
        root = ET.fromstring(svg)
        circles = root.findall(f".//{SVG}circle")
        self.assertEqual(len(circles), 8)
        fills = {c.get("id"): c.get("fill") for c in circles}
        self.assertEqual(fills[first.id], HIGHLIGHT_COLOR)
        self.assertEqual(len(root.findall(f".//{SVG}polygon")), 1)

    def test_vector_renderer_grid_and_row_labels_follow_settings(self):
        layout = _layout()
        renderer = VectorRenderer(VisibilityCache(clock=FakeClock()))

        root = ET.fromstring(renderer.render(layout, Viewport()))
        grid = root.findall(f".//{SVG}path[@class='grid']")
        self.assertEqual(len(grid), 1)
        self.assertIn("M20 0V600", grid[0].get("d"))
        labels = {t.text: t for t in root.findall(f".//{SVG}text[@class='row-label']")}
        self.assertEqual(sorted(labels), ["A", "B"])
        row_a = [s for s in layout.seats if s.row == "A"]
        leftmost = min(s.x for s in row_a)
        self.assertAlmostEqual(float(labels["A"].get("x")), leftmost - layout.settings.seat_size - 10, places=2)

        layout.update_settings(show_grid=False, show_row_labels=False)
        root = ET.fromstring(renderer.render(layout, Viewport()))
        self.assertEqual(root.findall(f".//{SVG}path[@class='grid']"), [])
        self.assertEqual(root.findall(f".//{SVG}text[@class='row-label']"), [])

    def test_scene_graph_applies_diffs(self):
        layout = _layout()
        renderer = SceneGraphRenderer(VisibilityCache(clock=FakeClock()))
        vp = Viewport()

        diff = renderer.render(layout, vp)
        self.assertEqual((diff.created, diff.updated, diff.removed), (10, 0, 0))

        self.assertFalse(renderer.render(layout, vp).changed)

        seat = layout.seats[0]
        layout.update_seat(seat.id, status=SeatStatus.reserved)
        diff = renderer.render(layout, vp)
        self.assertEqual((diff.created, diff.updated, diff.removed), (0, 1, 0))
        self.assertEqual(renderer.nodes[seat.id].fill, STATUS_COLORS[SeatStatus.reserved])

        layout.delete_seat(seat.id)
        diff = renderer.render(layout, vp)
        self.assertEqual(diff.removed, 1)
        self.assertNotIn(seat.id, renderer.nodes)

    def test_choose_renderer(self):
        self.assertEqual(choose_renderer(10), RendererKind.VECTOR)
        self.assertEqual(choose_renderer(2000), RendererKind.VECTOR)
        self.assertEqual(choose_renderer(2001), RendererKind.SCENE_GRAPH)
        self.assertEqual(choose_renderer(50, threshold=20), RendererKind.SCENE_GRAPH)

    def test_selector_switches_with_item_count(self):
        layout = _layout()
        selector = RendererSelector(threshold=12, visibility=VisibilityCache(clock=FakeClock()))
        self.assertIsInstance(selector.render(layout, Viewport()), str)
        self.assertEqual(selector.current, RendererKind.VECTOR)

        for i in range(3):
            layout.add_seat(Seat(x=500 + i * 40, y=500))
        selector.render(layout, Viewport())
        self.assertEqual(selector.current, RendererKind.SCENE_GRAPH)


if __name__ == "__main__":
    unittest.main()
