import os
import tempfile
import threading
import unittest
from datetime import date

from automate.db import PostgresDbClient


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")
        self.user = self.db.upsert_user("uid-1", "a@example.com", "A")

    def test_upsert_user_is_idempotent(self):
        again = self.db.upsert_user("uid-1", "new@example.com", "Alice")
        self.assertEqual(again.id, self.user.id)
        self.assertEqual(again.email, "new@example.com")
        fetched = self.db.get_user_by_firebase_uid("uid-1")
        self.assertEqual(fetched.display_name, "Alice")
        self.assertIsNone(self.db.get_user_by_firebase_uid("unknown"))

    def test_vehicles_and_documents(self):
        vehicle = self.db.create_vehicle(self.user.id, make="Seat", year=2020)
        self.assertEqual(
            [v.id for v in self.db.list_vehicles(self.user.id)], [vehicle.id]
        )
        self.assertEqual(self.db.get_vehicle(vehicle.id).year, 2020)

        for doc_type, expiry in (("Seguro", date(2030, 6, 1)), ("ITV", date(2030, 1, 1))):
            self.db.create_document(
                vehicle.id,
                document_type=doc_type,
                expiry_date=expiry,
                storage_path=f"uid-1/{vehicle.id}/{doc_type}.pdf",
                public_url=None,
            )
        docs = self.db.list_documents(vehicle.id)
        self.assertEqual([d.document_type for d in docs], ["ITV", "Seguro"])
        self.assertEqual(docs[0].expiry_date, date(2030, 1, 1))

        expiring = self.db.list_documents_expiring_between(
            date(2029, 12, 1), date(2030, 1, 1)
        )
        self.assertEqual([d.document_type for d in expiring], ["ITV"])

    def test_device_upsert_moves_ownership(self):
        other = self.db.upsert_user("uid-2", None, None)
        first = self.db.upsert_device(self.user.id, "tok", "android")
        second = self.db.upsert_device(other.id, "tok", "ios")
        self.assertEqual(first.id, second.id)
        self.assertEqual(self.db.list_device_tokens(self.user.id), [])
        self.assertEqual(self.db.list_device_tokens(other.id), ["tok"])

    def test_reminders_scoped_to_owner(self):
        other = self.db.upsert_user("uid-2", None, None)
        reminder = self.db.create_reminder(
            self.user.id, {"title": "ITV", "due_date": date(2030, 1, 1)}
        )
        self.assertFalse(reminder.is_completed)

        self.assertIsNone(
            self.db.update_reminder(reminder.id, other.id, {"title": "x"})
        )
        self.assertEqual(self.db.delete_reminder(reminder.id, other.id), 0)

        updated = self.db.update_reminder(
            reminder.id, self.user.id, {"is_completed": True}
        )
        self.assertTrue(updated.is_completed)
        self.assertEqual(updated.title, "ITV")
        self.assertEqual(
            [r.id for r in self.db.list_reminders(self.user.id)], [reminder.id]
        )
        self.assertEqual(self.db.delete_reminder(reminder.id, self.user.id), 1)
        self.assertEqual(self.db.list_reminders(self.user.id), [])


CONCURRENT_CALLERS = 8


class ConcurrentUpsertTests(unittest.TestCase):
    """
    Concurrent registrations against a file-backed SQLite database, so each
    thread gets its own connection.
    """

    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = os.path.join(tmpdir.name, "automate.db")
        self.db = PostgresDbClient(
            f"sqlite+pysqlite:///{path}?check_same_thread=false"
        )
        self.addCleanup(self.db.engine.dispose)

    def run_concurrently(self, target):
        barrier = threading.Barrier(CONCURRENT_CALLERS)
        results, errors = [], []

        def worker(index):
            barrier.wait()
            try:
                results.append(target(index))
            except Exception as exc:
                errors.append(exc)

        threads = [
            threading.Thread(target=worker, args=(i,))
            for i in range(CONCURRENT_CALLERS)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    def test_same_token_registered_at_once(self):
        users = [
            self.db.upsert_user(f"uid-{i}", None, None)
            for i in range(CONCURRENT_CALLERS)
        ]
        results, errors = self.run_concurrently(
            lambda i: self.db.upsert_device(users[i].id, "shared-token", "android")
        )

        self.assertEqual(errors, [])
        self.assertEqual(len(results), CONCURRENT_CALLERS)
        self.assertEqual(len({device.id for device in results}), 1)
        owners = [
            user for user in users if self.db.list_device_tokens(user.id)
        ]
        self.assertEqual(len(owners), 1)

    def test_same_user_registered_at_once(self):
        results, errors = self.run_concurrently(
            lambda i: self.db.upsert_user("uid-shared", f"{i}@example.com", None)
        )

        self.assertEqual(errors, [])
        self.assertEqual(len({user.id for user in results}), 1)
        stored = self.db.get_user_by_firebase_uid("uid-shared")
        self.assertIn(stored.email, {user.email for user in results})


if __name__ == "__main__":
    unittest.main()
