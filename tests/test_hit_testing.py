import unittest

from venue_layout.generation import generate_section_seats
from venue_layout.geometry import polar_to_cartesian
from venue_layout.hit_testing import find_seat_at, find_section_at, selectable
from venue_layout.models import ArcData, Seat, SeatStatus, Section


class TestFindSeat(unittest.TestCase):
    def test_every_grid_seat_found_at_its_centre(self):
        for rotation in (0, 30):
            sec = Section(x=50, y=80, width=400, height=300, rows=6, seats_per_row=9, rotation_degrees=rotation)
            seats = generate_section_seats(sec, None)
            for seat in seats:
                hit = find_seat_at((seat.x, seat.y), seats, 25)
                self.assertIsNotNone(hit)
                self.assertEqual(hit.id, seat.id)

    def test_radius_limit(self):
        seats = [Seat(x=100, y=100)]
        # 25 / 1.5 = 16.67
        self.assertIsNotNone(find_seat_at((116, 100), seats, 25))
        self.assertIsNone(find_seat_at((117, 100), seats, 25))

    def test_nearest_wins_and_ties_go_to_first(self):
        a = Seat(x=0, y=0)
        b = Seat(x=10, y=0)
        self.assertEqual(find_seat_at((7, 0), [a, b], 25).id, b.id)
        self.assertEqual(find_seat_at((5, 0), [a, b], 25).id, a.id)
        self.assertEqual(find_seat_at((5, 0), [b, a], 25).id, b.id)

    def test_selectable(self):
        self.assertTrue(selectable(Seat(status=SeatStatus.available)))
        self.assertTrue(selectable(Seat(status=SeatStatus.sold)))
        self.assertFalse(selectable(Seat(status=SeatStatus.booked)))
        self.assertFalse(selectable(Seat(status=SeatStatus.unavailable)))


class TestFindSection(unittest.TestCase):
    def test_rect_and_rotated_rect(self):
        plain = Section(x=0, y=0, width=100, height=20)
        turned = Section(x=200, y=0, width=100, height=20, rotation_degrees=90)
        sections = [plain, turned]
        self.assertEqual(find_section_at((50, 10), sections).id, plain.id)
        self.assertEqual(find_section_at((250, 50), sections).id, turned.id)
        self.assertIsNone(find_section_at((290, 10), sections))

    def test_arc_section(self):
        arc = Section(
            is_arc=True,
            arc_data=ArcData(center_x=0, center_y=0, inner_radius=100, outer_radius=200, start_angle_deg=180, end_angle_deg=360),
        )
        inside = polar_to_cartesian((0, 0), 150, 270)
        outside = polar_to_cartesian((0, 0), 150, 90)
        self.assertIs(find_section_at(inside, [arc]), arc)
        self.assertIsNone(find_section_at(outside, [arc]))
        # The bounding box centre lies in the hole of the ring.
        self.assertIsNone(find_section_at((0, 0), [arc]))

    def test_later_section_wins_overlap(self):
        below = Section(x=0, y=0, width=100, height=100)
        above = Section(x=50, y=50, width=100, height=100)
        self.assertIs(find_section_at((75, 75), [below, above]), above)
        self.assertIs(find_section_at((25, 25), [below, above]), below)


if __name__ == "__main__":
    unittest.main()
