from typing import Optional

from prescriptions.models import Drug, Prescription, PrescriptionItem, SafetyAlert
from prescriptions.services import notes


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def format_drug(drug: Drug, *, quantity_available: Optional[int]=None) -> dict:
    data = {
        'id': str(drug.id),
        'genericName': drug.generic_name,
        'brandName': drug.brand_name,
        'strength': drug.strength,
        'controlledSubstanceSchedule': drug.controlled_substance_schedule,
        'maxDailyUnits': drug.max_daily_units,
    }
    if quantity_available is not None:
        data['quantityAvailable'] = quantity_available
    return data


def format_item(item: PrescriptionItem) -> dict:
    return {
        'id': str(item.id),
        'drugId': str(item.drug_id),
        'drug': format_drug(item.drug),
        'quantityPrescribed': item.quantity_prescribed,
        'quantityDispensed': item.quantity_dispensed,
        'dosageInstructions': item.dosage_instructions,
        'daySupply': item.day_supply,
    }


def format_alert(alert: SafetyAlert) -> dict:
    return {
        'id': alert.id,
        'prescriptionId': str(alert.prescription_id),
        'drugId': str(alert.drug_id) if alert.drug_id else None,
        'alertType': alert.alert_type,
        'severity': alert.severity,
        'message': alert.message,
        'acknowledged': alert.acknowledged,
        'acknowledgedBy': alert.acknowledged_by or None,
        'acknowledgedAt': _iso(alert.acknowledged_at),
        'createdAt': _iso(alert.created_at),
    }


def format_prescription(p: Prescription, *, include_alerts: bool=True) -> dict:
    entries = notes.entries_for(p)
    data = {
        'id': str(p.id),
        'patientId': p.patient_id,
        'patientName': p.patient_name,
        'prescriberId': p.prescriber_id,
        'prescriberName': p.prescriber_name,
        'prescriberLicense': p.prescriber_license,
        'prescriberDea': p.prescriber_dea,
        'prescriptionDate': p.prescription_date.isoformat() if p.prescription_date else None,
        'status': p.status,
        'refillsAllowed': p.refills_allowed,
        'refillsRemaining': p.refills_remaining,
        'notes': notes.render_notes(entries),
        'noteEntries': [e.as_dict() for e in entries],
        'verifiedBy': p.verified_by or None,
        'verifiedAt': _iso(p.verified_at),
        'filledBy': p.filled_by or None,
        'filledAt': _iso(p.filled_at),
        'dispensedBy': p.dispensed_by or None,
        'dispensedAt': _iso(p.dispensed_at),
        'cancelledAt': _iso(p.cancelled_at),
        'version': p.version,
        'createdAt': _iso(p.created_at),
        'updatedAt': _iso(p.updated_at),
        'items': [format_item(it) for it in p.items.all()],
    }
    if include_alerts:
        data['alerts'] = [format_alert(a) for a in p.alerts.all()]
    return data
