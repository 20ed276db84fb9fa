"""
Management command to seed the formulary with sample drugs, interaction
rules and stock lots.  Safe to run repeatedly: drugs are matched on
generic name and strength, and lots on lot number.
"""
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from prescriptions.models import Drug, DrugInteraction, InventoryLot
from prescriptions.services import inventory

DRUGS = [
    # generic, brand, strength, schedule, max daily units, stock
    ("Amoxicillin", "Amoxil", "500 mg", Drug.SCHEDULE_NON_CONTROLLED, 6, 500),
    ("Lisinopril", "Zestril", "10 mg", Drug.SCHEDULE_NON_CONTROLLED, 4, 300),
    ("Warfarin", "Coumadin", "5 mg", Drug.SCHEDULE_NON_CONTROLLED, 2, 200),
    ("Ibuprofen", "Advil", "200 mg", Drug.SCHEDULE_NON_CONTROLLED, 16, 1000),
    ("Oxycodone", "OxyContin", "10 mg", "CII", 8, 120),
    ("Alprazolam", "Xanax", "0.5 mg", "CIV", 8, 90),
]

INTERACTIONS = [
    ("Warfarin", "Ibuprofen", "high", "Increased bleeding risk."),
    ("Oxycodone", "Alprazolam", "critical", "Concurrent opioid and benzodiazepine use: respiratory depression."),
    ("Lisinopril", "Ibuprofen", "medium", "NSAIDs may reduce antihypertensive effect."),
]


class Command(BaseCommand):
    help = "Seed sample drugs, interaction rules and stock lots"

    def add_arguments(self, parser):
        parser.add_argument("--no-stock", action="store_true", help="create drugs and rules without stock lots")

    @transaction.atomic
    def handle(self, *args, **options):
        by_name = {}
        for generic, brand, strength, schedule, max_daily, stock in DRUGS:
            drug, created = Drug.objects.get_or_create(
                generic_name=generic,
                strength=strength,
                defaults={
                    "brand_name": brand,
                    "controlled_substance_schedule": schedule,
                    "max_daily_units": max_daily,
                },
            )
            by_name[generic] = drug
            self.stdout.write(f"{'created' if created else 'exists '}: {drug}")

            if options["no_stock"]:
                continue
            lot_number = f"SEED-{generic[:4].upper()}-001"
            if not InventoryLot.objects.filter(drug=drug, lot_number=lot_number).exists():
                inventory.receive_stock(
                    drug.id, stock, lot_number=lot_number,
                    expiration_date=timezone.localdate() + timedelta(days=365),
                )

        for a, b, severity, description in INTERACTIONS:
            DrugInteraction.objects.update_or_create(
                drug_a=by_name[a], drug_b=by_name[b],
                defaults={"severity": severity, "description": description},
            )

        self.stdout.write(self.style.SUCCESS(
            f"Formulary seeded: {len(DRUGS)} drugs, {len(INTERACTIONS)} interaction rules."
        ))
