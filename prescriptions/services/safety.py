"""
Safety alert generation for prescriptions.

Alerts are derived from the interaction rule table, duplicated drugs,
per-drug daily unit limits and missing DEA numbers on scheduled drugs.
The workflow only reads alerts back to gate verification.
"""
from __future__ import annotations

import logging
from typing import Iterable, List

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from prescriptions.exceptions import NotFound
from prescriptions.models import DrugInteraction, Prescription, SafetyAlert

logger = logging.getLogger(__name__)


def lookup_interaction(a_id, b_id):
    return DrugInteraction.objects.filter(
        Q(drug_a_id=a_id, drug_b_id=b_id) | Q(drug_a_id=b_id, drug_b_id=a_id)
    ).first()


def _interaction_alerts(prescription: Prescription, items) -> List[SafetyAlert]:
    alerts = []
    seen = set()
    drugs = list({it.drug_id: it.drug for it in items}.values())
    for i in range(len(drugs)):
        for j in range(i + 1, len(drugs)):
            a, b = drugs[i], drugs[j]
            rule = lookup_interaction(a.id, b.id)
            if not rule:
                continue
            key = tuple(sorted([str(a.id), str(b.id)]))
            if key in seen:
                continue
            seen.add(key)
            message = f"Interaction between {a.generic_name} and {b.generic_name}"
            if rule.description:
                message = f"{message}: {rule.description}"
            alerts.append(SafetyAlert(prescription=prescription, drug=a, alert_type='interaction',
                                      severity=rule.severity, message=message))
    return alerts


def _duplicate_alerts(prescription: Prescription, items) -> List[SafetyAlert]:
    alerts = []
    counts = {}
    for it in items:
        counts.setdefault(it.drug_id, []).append(it)
    for lines in counts.values():
        if len(lines) > 1:
            drug = lines[0].drug
            alerts.append(SafetyAlert(prescription=prescription, drug=drug, alert_type='duplicate_therapy',
                                      severity='medium',
                                      message=f"{drug.generic_name} appears on {len(lines)} items"))
    return alerts


def _dosage_alerts(prescription: Prescription, items) -> List[SafetyAlert]:
    alerts = []
    for it in items:
        limit = it.drug.max_daily_units
        if not limit or not it.day_supply:
            continue
        per_day = it.quantity_prescribed / it.day_supply
        if per_day > limit:
            alerts.append(SafetyAlert(
                prescription=prescription, drug=it.drug, alert_type='dosage', severity='high',
                message=f"{it.drug.generic_name}: {per_day:.1f} units/day exceeds limit of {limit}",
            ))
    return alerts


def _controlled_alerts(prescription: Prescription, items) -> List[SafetyAlert]:
    if (prescription.prescriber_dea or '').strip():
        return []
    alerts = []
    for it in items:
        if it.drug.is_controlled:
            alerts.append(SafetyAlert(
                prescription=prescription, drug=it.drug, alert_type='controlled_substance', severity='critical',
                message=f"{it.drug.generic_name} is schedule {it.drug.controlled_substance_schedule} "
                        f"but the prescriber has no DEA number on file",
            ))
    return alerts


@transaction.atomic
def generate_alerts(prescription: Prescription) -> List[SafetyAlert]:
    items = list(prescription.items.select_related('drug').order_by('position'))
    alerts = (
        _controlled_alerts(prescription, items)
        + _interaction_alerts(prescription, items)
        + _duplicate_alerts(prescription, items)
        + _dosage_alerts(prescription, items)
    )
    for a in alerts:
        a.save()
    if alerts:
        logger.info('generated %s safety alert(s) for prescription %s', len(alerts), prescription.id)
    return alerts


def get_alerts(prescription_id) -> List[SafetyAlert]:
    return list(SafetyAlert.objects.filter(prescription_id=prescription_id).order_by('created_at', 'id'))


def has_blocking_alerts(alerts: Iterable[SafetyAlert]) -> bool:
    """True when any alert is critical and still unacknowledged."""
    return any(a.severity == SafetyAlert.SEVERITY_CRITICAL and not a.acknowledged for a in alerts)


def acknowledge_alert(alert_id, user_id) -> SafetyAlert:
    alert = SafetyAlert.objects.filter(id=alert_id).first()
    if not alert:
        raise NotFound(f"Safety alert {alert_id} not found")
    if not alert.acknowledged:
        alert.acknowledged = True
        alert.acknowledged_by = str(user_id)
        alert.acknowledged_at = timezone.now()
        alert.save(update_fields=['acknowledged', 'acknowledged_by', 'acknowledged_at'])
    return alert
