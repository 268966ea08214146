# payments/management/commands/check_party_balances.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand

from parties.models import Party
from payments.services.reconciliation import check_party_balance


class Command(BaseCommand):
    help = "Compare each party's stored balance with the balance implied by its invoices and payments."

    def add_arguments(self, parser):
        parser.add_argument(
            "--party",
            dest="party_id",
            help="Check a single party (UUID)",
        )
        parser.add_argument(
            "--include-inactive",
            action="store_true",
            help="Also check deactivated parties.",
        )
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any drift is found.",
        )

    def handle(self, *args, **options):
        strict = bool(options.get("strict"))
        party_id = options.get("party_id")

        qs = Party.objects.all().order_by("name")
        if party_id:
            try:
                qs = qs.filter(pk=party_id)
                found = qs.exists()
            except ValidationError:
                found = False
            if not found:
                self.stderr.write(self.style.ERROR(f"Party not found: {party_id}"))
                return self._exit(strict)
        elif not options.get("include_inactive"):
            qs = qs.filter(is_active=True)

        self.stdout.write(self.style.MIGRATE_HEADING("Party balance reconciliation"))

        checked = 0
        drifted = []

        for party in qs.iterator():
            checked += 1
            result = check_party_balance(party)
            if result.is_consistent:
                continue
            drifted.append(result)
            self.stderr.write(
                self.style.ERROR(
                    f"[FAIL] {result.party_name} ({result.party_id}): "
                    f"expected={result.expected} actual={result.actual} drift={result.drift}"
                )
            )

        self.stdout.write(f"Parties checked: {checked}")
        if drifted:
            self.stderr.write(self.style.ERROR(f"Balance drift found for {len(drifted)} party(ies)"))
        else:
            self.stdout.write(self.style.SUCCESS("[OK] All party balances reconcile"))

        return self._exit(strict and bool(drifted))

    def _exit(self, fail: bool):
        if fail:
            raise SystemExit(1)
        return None
