"""
Django admin registrations for the pharmacy models.

Superusers can inspect prescriptions, maintain the formulary and stock
lots, and review alerts at ``/admin/``.  The controlled substance log
is read only.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    ControlledSubstanceLog,
    Drug,
    DrugInteraction,
    InventoryLot,
    Prescription,
    PrescriptionItem,
    PrescriptionNote,
    SafetyAlert,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'license_number', 'dea_number', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name', 'license_number')


class InventoryLotInline(admin.TabularInline):
    model = InventoryLot
    extra = 0


@admin.register(Drug)
class DrugAdmin(admin.ModelAdmin):
    list_display = ('generic_name', 'brand_name', 'strength', 'controlled_substance_schedule', 'max_daily_units')
    list_filter = ('controlled_substance_schedule',)
    search_fields = ('generic_name', 'brand_name')
    inlines = [InventoryLotInline]


@admin.register(InventoryLot)
class InventoryLotAdmin(admin.ModelAdmin):
    list_display = ('drug', 'lot_number', 'quantity', 'expiration_date', 'received_at')
    list_filter = ('expiration_date',)
    search_fields = ('lot_number', 'drug__generic_name')


@admin.register(DrugInteraction)
class DrugInteractionAdmin(admin.ModelAdmin):
    list_display = ('drug_a', 'drug_b', 'severity')
    list_filter = ('severity',)


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 0


class PrescriptionNoteInline(admin.TabularInline):
    model = PrescriptionNote
    extra = 0


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient_name', 'prescriber_name', 'status', 'prescription_date', 'version', 'created_at')
    list_filter = ('status', 'prescription_date')
    search_fields = ('id', 'patient_id', 'patient_name', 'prescriber_name')
    readonly_fields = ('version', 'created_at', 'updated_at')
    inlines = [PrescriptionItemInline, PrescriptionNoteInline]


@admin.register(SafetyAlert)
class SafetyAlertAdmin(admin.ModelAdmin):
    list_display = ('id', 'prescription', 'alert_type', 'severity', 'acknowledged', 'created_at')
    list_filter = ('alert_type', 'severity', 'acknowledged')


@admin.register(ControlledSubstanceLog)
class ControlledSubstanceLogAdmin(admin.ModelAdmin):
    list_display = ('drug', 'prescription', 'quantity', 'pharmacist_id', 'created_at')
    list_filter = ('drug',)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'actor_id', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
