"""
Database models for the pharmacy backend.

These models capture the prescription workflow (prescriptions, their
items and note log), the drug formulary with its interaction rules,
stock lots backing the inventory ledger, generated safety alerts, the
controlled substance dispensing log and a generic audit trail.
"""
from __future__ import annotations

import uuid
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Custom user model carrying a pharmacy role.

    Prescribers create and amend prescriptions, pharmacists verify,
    fill and dispense them.  Technicians may read and annotate.  Admins
    can do everything.
    """
    ROLE_PRESCRIBER = 'prescriber'
    ROLE_PHARMACIST = 'pharmacist'
    ROLE_TECHNICIAN = 'technician'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PRESCRIBER, 'Prescriber'),
        (ROLE_PHARMACIST, 'Pharmacist'),
        (ROLE_TECHNICIAN, 'Technician'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_TECHNICIAN)
    license_number = models.CharField(max_length=64, blank=True)
    dea_number = models.CharField(max_length=32, blank=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Drug(models.Model):
    """A formulary entry referenced by prescription items and stock lots."""
    SCHEDULE_NON_CONTROLLED = 'non-controlled'
    SCHEDULE_CHOICES = [
        (SCHEDULE_NON_CONTROLLED, 'Non-controlled'),
        ('CII', 'Schedule II'),
        ('CIII', 'Schedule III'),
        ('CIV', 'Schedule IV'),
        ('CV', 'Schedule V'),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    generic_name = models.CharField(max_length=255)
    brand_name = models.CharField(max_length=255, blank=True)
    strength = models.CharField(max_length=64, blank=True)
    controlled_substance_schedule = models.CharField(
        max_length=16, choices=SCHEDULE_CHOICES, default=SCHEDULE_NON_CONTROLLED, db_index=True
    )
    # Upper bound on units per day, used by dosage alerts when set
    max_daily_units = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def is_controlled(self) -> bool:
        return self.controlled_substance_schedule != self.SCHEDULE_NON_CONTROLLED

    def __str__(self) -> str:
        return f"{self.generic_name} {self.strength}".strip()


class InventoryLot(models.Model):
    """Stock on hand for one drug lot.  The ledger sums usable lots."""
    drug = models.ForeignKey(Drug, on_delete=models.CASCADE, related_name='lots')
    lot_number = models.CharField(max_length=64, blank=True)
    quantity = models.PositiveIntegerField(default=0)
    expiration_date = models.DateField(null=True, blank=True)
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['drug', 'expiration_date'], name='lot_drug_expiry_idx'),
        ]

    def __str__(self) -> str:
        return f"Lot {self.lot_number or self.pk} of {self.drug_id}: {self.quantity}"


class DrugInteraction(models.Model):
    """Interaction rule between two drugs (order of the pair is irrelevant)."""
    SEVERITY_CHOICES = [
        ('critical', 'Critical'),
        ('high', 'High'),
        ('medium', 'Medium'),
        ('low', 'Low'),
    ]
    drug_a = models.ForeignKey(Drug, on_delete=models.CASCADE, related_name='+')
    drug_b = models.ForeignKey(Drug, on_delete=models.CASCADE, related_name='+')
    severity = models.CharField(max_length=16, choices=SEVERITY_CHOICES, default='medium')
    description = models.TextField(blank=True)

    class Meta:
        unique_together = [('drug_a', 'drug_b')]

    def __str__(self) -> str:
        return f"{self.drug_a_id} x {self.drug_b_id} ({self.severity})"


class PrescriptionStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    VERIFIED = 'verified', 'Verified'
    FILLING = 'filling', 'Filling'
    FILLED = 'filled', 'Filled'
    DISPENSED = 'dispensed', 'Dispensed'
    CANCELLED = 'cancelled', 'Cancelled'


class Prescription(models.Model):
    """A patient-facing order for one or more drugs.

    The status only moves forward through the transition table in
    :mod:`prescriptions.services.workflow`.  ``version`` is bumped on
    every mutation so clients can detect concurrent edits.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient_id = models.CharField(max_length=64, db_index=True)
    patient_name = models.CharField(max_length=255)
    prescriber_id = models.CharField(max_length=64, db_index=True)
    prescriber_name = models.CharField(max_length=255)
    prescriber_license = models.CharField(max_length=64, blank=True)
    prescriber_dea = models.CharField(max_length=32, blank=True)
    prescription_date = models.DateField(db_index=True)
    status = models.CharField(
        max_length=16, choices=PrescriptionStatus.choices, default=PrescriptionStatus.PENDING, db_index=True
    )
    refills_allowed = models.PositiveIntegerField(default=0)
    refills_remaining = models.PositiveIntegerField(default=0)

    verified_by = models.CharField(max_length=64, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    filled_by = models.CharField(max_length=64, blank=True)
    filled_at = models.DateTimeField(null=True, blank=True)
    dispensed_by = models.CharField(max_length=64, blank=True)
    dispensed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'created_at'], name='rx_status_created_idx'),
            models.Index(fields=['patient_id', 'created_at'], name='rx_patient_created_idx'),
        ]

    @property
    def refills_used(self) -> int:
        return max(0, (self.refills_allowed or 0) - (self.refills_remaining or 0))

    def __str__(self) -> str:
        return f"Rx {self.id} for {self.patient_name} ({self.status})"


class PrescriptionItem(models.Model):
    """One drug line within a prescription."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='items')
    drug = models.ForeignKey(Drug, on_delete=models.PROTECT, related_name='prescription_items')
    quantity_prescribed = models.PositiveIntegerField()
    quantity_dispensed = models.PositiveIntegerField(default=0)
    dosage_instructions = models.TextField(blank=True)
    day_supply = models.PositiveIntegerField(null=True, blank=True)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['position']

    def __str__(self) -> str:
        return f"{self.drug_id} x{self.quantity_prescribed} on {self.prescription_id}"


class PrescriptionNote(models.Model):
    """A single entry in a prescription's append-only note log."""
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='note_entries')
    author_id = models.CharField(max_length=64, default='system')
    text = models.TextField()
    # Null for legacy lines imported without a parseable timestamp
    created_at = models.DateTimeField(null=True, blank=True)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['position', 'id']

    def __str__(self) -> str:
        return f"Note {self.position} on {self.prescription_id} by {self.author_id}"


class SafetyAlert(models.Model):
    """A generated clinical risk warning attached to a prescription."""
    SEVERITY_CRITICAL = 'critical'
    SEVERITY_CHOICES = DrugInteraction.SEVERITY_CHOICES
    TYPE_CHOICES = [
        ('interaction', 'Drug interaction'),
        ('dosage', 'Dosage'),
        ('duplicate_therapy', 'Duplicate therapy'),
        ('controlled_substance', 'Controlled substance'),
    ]
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='alerts')
    drug = models.ForeignKey(Drug, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    alert_type = models.CharField(max_length=32, choices=TYPE_CHOICES)
    severity = models.CharField(max_length=16, choices=SEVERITY_CHOICES, db_index=True)
    message = models.TextField()
    acknowledged = models.BooleanField(default=False)
    acknowledged_by = models.CharField(max_length=64, blank=True)
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['prescription', 'severity', 'acknowledged'], name='alert_rx_sev_ack_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.severity} {self.alert_type} on {self.prescription_id}"


class ControlledSubstanceLog(models.Model):
    """Append-only record of a scheduled drug leaving the pharmacy."""
    drug = models.ForeignKey(Drug, on_delete=models.PROTECT, related_name='dispensing_logs')
    prescription = models.ForeignKey(Prescription, on_delete=models.PROTECT, related_name='controlled_logs')
    quantity = models.PositiveIntegerField()
    patient_name = models.CharField(max_length=255)
    prescriber_name = models.CharField(max_length=255)
    prescriber_dea = models.CharField(max_length=32, blank=True)
    pharmacist_id = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['drug', 'created_at'], name='csl_drug_created_idx'),
        ]

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError('controlled substance log entries are immutable')
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.drug_id} x{self.quantity} rx={self.prescription_id} by {self.pharmacist_id}"


class AuditEvent(models.Model):
    actor_id = models.CharField(max_length=64, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}/{self.object_id}"
