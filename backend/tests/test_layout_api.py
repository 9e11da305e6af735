import os
import tempfile
import unittest


class TestVenueLayoutAPI(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        # Point the app at a temporary sqlite DB for tests.
        cls._tmpdir = tempfile.TemporaryDirectory()
        os.environ["VENUE_LAYOUT_DATA_DIR"] = cls._tmpdir.name
        # Import after env var set so db uses the temp dir.
        from backend.app.db import init_db
        from backend.app.main import app

        cls.app = app
        init_db()

    @classmethod
    def tearDownClass(cls):
        from backend.app.db import engine

        engine.dispose()
        cls._tmpdir.cleanup()

    def _client(self):
        from fastapi.testclient import TestClient

        return TestClient(self.app)

    def _event(self, c, *, starts_at="2099-06-01T19:00:00Z", organizer="org-1"):
        ev = c.post("/events", json={"name": "Gala", "organizerId": organizer, "startsAt": starts_at})
        self.assertEqual(ev.status_code, 200)
        event_id = ev.json()["id"]
        tt = c.post(f"/events/{event_id}/ticket-types", json={"name": "Standard", "price": 45.0}).json()
        return event_id, tt["id"]

    def _document(self, ticket_type_id):
        from venue_layout.generation import build_sample_layout
        from venue_layout.layout import Layout
        from venue_layout.models import TicketType
        from venue_layout.persistence import document_to_dict, serialize

        layout = Layout(ticket_types=[TicketType(id=ticket_type_id, name="Standard", price=45)])
        build_sample_layout(layout, ticket_type_id)
        return layout, document_to_dict(serialize(layout))

    def test_health(self):
        self.assertEqual(self._client().get("/health").json(), {"ok": True})

    def test_event_and_ticket_types(self):
        c = self._client()
        event_id, tt_id = self._event(c)

        ev = c.get(f"/events/{event_id}").json()
        self.assertEqual(ev["organizerId"], "org-1")
        self.assertTrue(ev["startsAt"].startswith("2099-06-01T19:00:00"))

        types = c.get(f"/events/{event_id}/ticket-types").json()
        self.assertEqual([t["id"] for t in types], [tt_id])
        self.assertEqual(types[0]["isPublic"], True)

        self.assertEqual(c.get("/events/nope").status_code, 404)
        self.assertEqual(c.post(f"/events/{event_id}/ticket-types", json={"name": "Free", "price": 0}).status_code, 422)

    def test_save_and_load_layout(self):
        c = self._client()
        event_id, tt_id = self._event(c)
        layout, doc = self._document(tt_id)

        self.assertEqual(c.get(f"/events/{event_id}/layout").status_code, 404)

        r = c.put(f"/events/{event_id}/layout", json=doc, headers={"X-Organizer-Id": "org-1"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"eventId": event_id, "seats": len(layout.seats), "sections": 4})

        stored = c.get(f"/events/{event_id}/layout").json()
        self.assertEqual(len(stored["seats"]), len(layout.seats))
        self.assertEqual(stored["sections"][0]["arcData"]["outerRadius"], 350)

        summary = c.get(f"/events/{event_id}/layout/summary").json()
        self.assertEqual(summary["seats_total"], len(layout.seats))
        self.assertEqual(summary["potential_revenue"], round(45.0 * len(layout.seats), 2))

        csv_text = c.get(f"/events/{event_id}/seats.csv").text
        lines = csv_text.strip().splitlines()
        self.assertTrue(lines[0].startswith("event,section,row,seat"))
        self.assertEqual(len(lines), len(layout.seats) + 1)

    def test_save_rejections(self):
        c = self._client()
        event_id, tt_id = self._event(c)
        _, doc = self._document(tt_id)

        self.assertEqual(c.put(f"/events/{event_id}/layout", json=doc).status_code, 401)
        self.assertEqual(
            c.put(f"/events/{event_id}/layout", json=doc, headers={"X-Organizer-Id": "someone-else"}).status_code, 404
        )

        bad = dict(doc, seats=[dict(doc["seats"][0], ticketTypeId="unknown")])
        r = c.put(f"/events/{event_id}/layout", json=bad, headers={"X-Organizer-Id": "org-1"})
        self.assertEqual(r.status_code, 422)
        self.assertIn("problems", r.json()["detail"])

        dangling = dict(doc, seats=[dict(doc["seats"][0], sectionId="nowhere")])
        r = c.put(f"/events/{event_id}/layout", json=dangling, headers={"X-Organizer-Id": "org-1"})
        self.assertEqual(r.status_code, 422)

        broken_arc = dict(doc, sections=[dict(doc["sections"][0], arcData=None)])
        r = c.put(f"/events/{event_id}/layout", json=broken_arc, headers={"X-Organizer-Id": "org-1"})
        self.assertEqual(r.status_code, 422)

        self.assertEqual(c.get(f"/events/{event_id}/layout").status_code, 404)

    def test_past_event_conflict(self):
        c = self._client()
        event_id, tt_id = self._event(c, starts_at="2001-01-01T10:00:00+02:00")
        _, doc = self._document(tt_id)
        r = c.put(f"/events/{event_id}/layout", json=doc, headers={"X-Organizer-Id": "org-1"})
        self.assertEqual(r.status_code, 409)

    def test_start_time_stored_as_utc(self):
        from datetime import datetime, timezone

        from backend.app.db import get_session
        from backend.app.store import SqlLayoutStore
        from venue_layout.storage import as_utc

        c = self._client()
        event_id, _ = self._event(c, starts_at="2099-06-01T21:30:00+02:00")
        self.assertTrue(c.get(f"/events/{event_id}").json()["startsAt"].startswith("2099-06-01T19:30:00"))

        naive, _ = self._event(c, starts_at="2099-06-01T19:30:00")
        with get_session() as db:
            starts = SqlLayoutStore(db).event_starts_at(naive)
        self.assertEqual(as_utc(starts), datetime(2099, 6, 1, 19, 30, tzinfo=timezone.utc))

    def test_request_session_is_closed(self):
        from sqlmodel import select

        from backend.app.main import _session
        from backend.app.models import Event

        gen = _session()
        db = next(gen)
        db.exec(select(Event)).all()
        self.assertTrue(db.in_transaction())
        gen.close()
        self.assertFalse(db.in_transaction())

    def test_engine_session_over_sql_store(self):
        from backend.app.db import get_session
        from backend.app.store import SqlLayoutStore
        from venue_layout.editor import DrawTool
        from venue_layout.session import EditorSession

        c = self._client()
        event_id, tt_id = self._event(c)

        with get_session() as db:
            session = EditorSession.open(event_id, SqlLayoutStore(db, organizer_id="org-1"))
            self.assertEqual(session.editor.active_ticket_type_id, tt_id)
            session.editor.set_tool(DrawTool.SEAT)
            session.editor.click((100, 100))
            result = session.save()
            self.assertTrue(result.ok, result.message)

        stored = c.get(f"/events/{event_id}/layout").json()
        self.assertEqual(len(stored["seats"]), 1)
        self.assertEqual(stored["seats"][0]["ticketTypeId"], tt_id)


if __name__ == "__main__":
    unittest.main()
