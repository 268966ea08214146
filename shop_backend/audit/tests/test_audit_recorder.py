from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import TestCase

from audit.models import AuditEntry
from audit.services.audit_recorder import record_audit, record_audit_best_effort
from payments.services.exceptions import AuditWriteFailed

User = get_user_model()


class AuditRecorderTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="accountant@example.com", password="pass", role="accountant"
        )

    def test_record_audit_writes_entry_with_default_severity(self):
        entry = record_audit(
            actor=self.user,
            action=AuditEntry.ACTION_PAYMENT_RECEIVED,
            resource_type="Payment",
            resource_id="abc",
            details={"amount": "10.00"},
        )
        self.assertEqual(entry.severity, AuditEntry.SEVERITY_MEDIUM)
        self.assertEqual(entry.actor, self.user)
        self.assertEqual(entry.details, {"amount": "10.00"})

    def test_anonymous_actor_is_stored_as_automated(self):
        entry = record_audit(
            actor=AnonymousUser(),
            action=AuditEntry.ACTION_PARTY_CREATED,
            resource_type="Party",
            resource_id="p1",
        )
        self.assertIsNone(entry.actor)
        self.assertEqual(entry.severity, AuditEntry.SEVERITY_LOW)

    def test_entries_are_append_only(self):
        entry = record_audit(
            action=AuditEntry.ACTION_PARTY_CREATED, resource_type="Party", resource_id="p1"
        )
        with self.assertRaises(RuntimeError):
            entry.save()
        with self.assertRaises(RuntimeError):
            entry.delete()

    def test_write_failure_raises_audit_write_failed(self):
        with patch.object(AuditEntry.objects, "create", side_effect=RuntimeError("no table")):
            with self.assertRaises(AuditWriteFailed) as ctx:
                record_audit(
                    action=AuditEntry.ACTION_PARTY_CREATED, resource_type="Party", resource_id="p1"
                )
        self.assertEqual(ctx.exception.code, "audit_write_failed")

    def test_best_effort_variant_never_raises(self):
        with patch.object(AuditEntry.objects, "create", side_effect=RuntimeError("no table")):
            outcome = record_audit_best_effort(
                action=AuditEntry.ACTION_PARTY_CREATED, resource_type="Party", resource_id="p1"
            )
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.error_code, "audit_write_failed")
        self.assertFalse(AuditEntry.objects.exists())
