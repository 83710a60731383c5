import unittest
from datetime import date, timedelta

from automate.db import InMemoryDbClient
from automate.errors import ConfigurationError, PushError, StoreError
from automate.notifier import days_until, send_expiration_notifications
from automate.push import InMemoryPushClient

TODAY = date(2026, 3, 10)


class NotifierTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.push = InMemoryPushClient()
        self.user = self.db.upsert_user("uid-1", "a@example.com", None)
        self.vehicle = self.db.create_vehicle(self.user.id, make="Seat")
        self.db.upsert_device(self.user.id, "token-a", "android")
        self.db.upsert_device(self.user.id, "token-b", "ios")

    def add_document(self, days, vehicle_id=None, document_type="ITV"):
        return self.db.create_document(
            vehicle_id or self.vehicle.id,
            document_type=document_type,
            expiry_date=TODAY + timedelta(days=days),
            storage_path=f"uid-1/{days}.pdf",
            public_url=None,
        )

    def run_notifier(self):
        return send_expiration_notifications(self.db, self.push, today=TODAY)

    def test_days_until(self):
        self.assertEqual(days_until(TODAY + timedelta(days=15), TODAY), 15)
        self.assertEqual(days_until(TODAY, TODAY), 0)

    def test_fifteen_days_notifies_all_tokens(self):
        self.add_document(15)
        report = self.run_notifier()

        self.assertEqual(len(self.push.sent), 1)
        message = self.push.sent[0]
        self.assertEqual(sorted(message["tokens"]), ["token-a", "token-b"])
        self.assertEqual(message["title"], "Recordatorio AutoMate")
        self.assertEqual(message["body"], "Tu ITV caduca en 15 días.")
        self.assertEqual(report.notified, 1)
        self.assertEqual(report.sent, 2)

    def test_only_exact_target_days_notify(self):
        for days in (0, 6, 8, 14, 16, 29, 31):
            self.add_document(days)
        self.run_notifier()
        self.assertEqual(self.push.sent, [])

    def test_each_target_day_notifies(self):
        for days in (30, 15, 7):
            self.add_document(days, document_type=f"doc-{days}")
        report = self.run_notifier()
        bodies = [m["body"] for m in self.push.sent]
        self.assertEqual(
            bodies,
            [
                "Tu doc-7 caduca en 7 días.",
                "Tu doc-15 caduca en 15 días.",
                "Tu doc-30 caduca en 30 días.",
            ],
        )
        self.assertEqual(report.scanned, 3)

    def test_missing_vehicle_is_skipped(self):
        self.add_document(7, vehicle_id="missing-vehicle")
        self.add_document(15)
        report = self.run_notifier()

        self.assertEqual(report.skipped, 1)
        self.assertEqual(len(self.push.sent), 1)
        self.assertIn("15 días", self.push.sent[0]["body"])

    def test_user_without_devices_is_skipped(self):
        other = self.db.upsert_user("uid-2", None, None)
        vehicle = self.db.create_vehicle(other.id)
        self.add_document(7, vehicle_id=vehicle.id)
        report = self.run_notifier()
        self.assertEqual(self.push.sent, [])
        self.assertEqual(report.skipped, 1)

    def test_failed_tokens_are_counted(self):
        self.push.failing_tokens.add("token-b")
        self.add_document(30)
        report = self.run_notifier()
        self.assertEqual(report.sent, 1)
        self.assertEqual(report.failed, 1)

    def test_push_error_does_not_abort_run(self):
        calls = []

        class FlakyPush:
            def send_multicast(self, tokens, title, body):
                calls.append(body)
                if len(calls) == 1:
                    raise PushError("unavailable")
                return InMemoryPushClient().send_multicast(tokens, title, body)

        self.add_document(7)
        self.add_document(15)
        report = send_expiration_notifications(self.db, FlakyPush(), today=TODAY)
        self.assertEqual(len(calls), 2)
        self.assertEqual(report.failed, 2)
        self.assertEqual(report.sent, 2)

    def test_dry_run_sends_nothing(self):
        self.add_document(7)
        report = send_expiration_notifications(
            self.db, None, today=TODAY, dry_run=True
        )
        self.assertEqual(report.notified, 1)
        self.assertEqual(report.sent, 0)

    def test_missing_push_client_requires_dry_run(self):
        with self.assertRaises(ConfigurationError):
            send_expiration_notifications(self.db, None, today=TODAY)

    def test_initial_query_failure_propagates(self):
        def broken(start, end):
            raise StoreError("relation documents does not exist")

        self.db.list_documents_expiring_between = broken
        with self.assertRaises(StoreError):
            self.run_notifier()


if __name__ == "__main__":
    unittest.main()
