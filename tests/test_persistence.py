import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from venue_layout.generation import build_sample_layout
from venue_layout.layout import Layout
from venue_layout.models import LayoutSettings, Seat, SeatStatus, Section, TicketType
from venue_layout.persistence import (
    EventInPast,
    EventNotFound,
    LayoutValidationError,
    StoreUnavailable,
    deserialize,
    document_problems,
    document_to_json,
    prepare_for_save,
    serialize,
)
from venue_layout.storage import InMemoryLayoutStore, JsonFileLayoutStore


STD = TicketType(id="std", name="Standard", price=40)


def _sample() -> Layout:
    layout = Layout(LayoutSettings(name="Hall"), ticket_types=[STD])
    build_sample_layout(layout, STD.id)
    seats = layout.seats
    layout.update_seat(seats[0].id, status=SeatStatus.sold)
    layout.update_seat(seats[1].id, status=SeatStatus.reserved, ticket_type_id=None)
    return layout


class TestSerialize(unittest.TestCase):
    def test_round_trip_preserves_seats_and_sections(self):
        layout = _sample()
        restored = deserialize(document_to_json(serialize(layout)), [STD])

        self.assertEqual(len(restored.seats), len(layout.seats))
        self.assertEqual(len(restored.sections), len(layout.sections))
        self.assertEqual(restored.settings.name, "Hall")
        before = {s.id: (s.x, s.y, s.status, s.ticket_type_id) for s in layout.seats}
        after = {s.id: (s.x, s.y, s.status, s.ticket_type_id) for s in restored.seats}
        self.assertEqual(before, after)
        self.assertEqual(restored.sections[0].arc_data, layout.sections[0].arc_data)

    def test_document_uses_camel_case(self):
        data = json.loads(document_to_json(serialize(_sample())))
        self.assertEqual(set(data), {"layout", "stageConfig", "sections", "seats"})
        self.assertIn("ticketTypeId", data["seats"][0])
        self.assertIn("arcData", data["sections"][0])

    def test_malformed_documents_mean_no_layout(self):
        self.assertIsNone(deserialize("not json"))
        self.assertIsNone(deserialize("[1, 2]"))
        self.assertIsNone(deserialize({"layout": "big"}))

    def test_bad_setting_falls_back_to_default_and_keeps_seats(self):
        doc = json.loads(document_to_json(serialize(_sample())))
        doc["layout"].update(gridSize=-1, seatSize=0)
        doc["stageConfig"]["width"] = "wide"

        layout = deserialize(doc, [STD])

        self.assertEqual(layout.settings.name, "Hall")
        self.assertEqual(layout.settings.grid_size, LayoutSettings().grid_size)
        self.assertEqual(layout.settings.seat_size, 25)
        self.assertEqual(len(layout.sections), 4)
        self.assertEqual(len(layout.seats), len(doc["seats"]))

    def test_partial_document_is_repaired(self):
        good = Section(id="s1").model_dump(by_alias=True)
        doc = {
            "layout": {"name": "Partial"},
            "sections": [good, {"isArc": True}, good],
            "seats": [
                {"id": "a", "x": 1, "y": 2, "sectionId": "s1"},
                {"id": "b", "x": 3, "y": 4, "sectionId": "gone"},
                {"id": "a", "x": 9, "y": 9},
                {"id": "c", "status": "melted"},
            ],
        }
        layout = deserialize(doc)

        self.assertEqual(layout.settings.name, "Partial")
        self.assertEqual(layout.settings.seat_size, 25)
        self.assertEqual([s.id for s in layout.sections], ["s1"])
        self.assertEqual([s.id for s in layout.seats], ["a", "b"])
        self.assertEqual(layout.get_seat("a").x, 1)
        self.assertIsNone(layout.get_seat("b").section_id)

    def test_non_list_collections_become_empty(self):
        layout = deserialize({"sections": {"x": 1}, "seats": None})
        self.assertEqual(layout.item_count(), 0)
        self.assertEqual(layout.stage.name, "SCREEN")


class TestPrepareForSave(unittest.TestCase):
    def test_requires_ticket_types(self):
        with self.assertRaises(LayoutValidationError):
            prepare_for_save(Layout(), lambda m: True)

    def test_default_ticket_type_needs_consent(self):
        layout = _sample()
        with self.assertRaises(LayoutValidationError):
            prepare_for_save(layout, lambda m: False)
        self.assertEqual(sum(1 for s in layout.seats if s.ticket_type_id is None), 1)

        doc = prepare_for_save(layout, lambda m: True)
        self.assertTrue(all(s.ticket_type_id == "std" for s in doc.seats))
        self.assertTrue(all(s.ticket_type_id == "std" for s in layout.seats))
        self.assertEqual(document_problems(doc, ["std"]), [])

    def test_document_problems(self):
        layout = Layout(ticket_types=[STD])
        layout.add_seat(Seat(id="x", ticket_type_id="gold"))
        doc = serialize(layout)
        doc.seats.append(Seat(id="x", ticket_type_id="std", section_id="nowhere"))
        problems = document_problems(doc, ["std"])
        self.assertEqual(len(problems), 3)
        without_types = document_problems(doc, [])
        self.assertEqual(without_types[0], "event has no ticket types")
        self.assertEqual(len(without_types), 5)


class TestStores(unittest.TestCase):
    def _check_store(self, store, add_event):
        future = datetime.now(timezone.utc) + timedelta(days=30)
        past = datetime.now(timezone.utc) - timedelta(days=1)
        add_event("e1", starts_at=future, ticket_types=[STD])
        add_event("old", starts_at=past, ticket_types=[STD])

        self.assertIsNone(store.load("e1"))
        self.assertEqual([t.id for t in store.list_ticket_types("e1")], ["std"])

        layout = _sample()
        doc = prepare_for_save(layout, lambda m: True)
        store.save("e1", doc)
        restored = deserialize(store.load("e1"), [STD])
        self.assertEqual(len(restored.seats), len(layout.seats))

        with self.assertRaises(EventInPast):
            store.save("old", doc)
        with self.assertRaises(EventNotFound):
            store.load("missing")

        layout.add_seat(Seat(ticket_type_id="gold"))
        with self.assertRaises(LayoutValidationError):
            store.save("e1", serialize(layout))

    def test_in_memory_store(self):
        store = InMemoryLayoutStore()
        self._check_store(store, store.add_event)
        store.available = False
        with self.assertRaises(StoreUnavailable):
            store.load("e1")

    def test_json_file_store(self):
        with tempfile.TemporaryDirectory() as td:
            store = JsonFileLayoutStore(td)
            self._check_store(store, store.create_event)
            data = json.loads((store.root / "e1.json").read_text(encoding="utf-8"))
            self.assertIn("stageConfig", data["layout"])


if __name__ == "__main__":
    unittest.main()
