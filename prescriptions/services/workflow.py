"""
Prescription workflow engine.

Owns the status machine and coordinates the inventory ledger, the
safety alert generator and the controlled substance log at each
transition::

    pending -> verified -> filling -> filled -> dispensed
        \\________\\__________\\_________\\-> cancelled

Every mutating operation runs in one transaction and locks the
prescription row first, so transitions on a single prescription are
serialized and a failed fill leaves no partial deduction behind.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from prescriptions.exceptions import (
    InsufficientInventory,
    InvalidState,
    NotFound,
    SafetyBlocked,
    ValidationError,
    VersionConflict,
)
from prescriptions.models import Drug, Prescription, PrescriptionItem, PrescriptionStatus, SafetyAlert
from prescriptions.services import controlled, inventory, notes, safety
from prescriptions.services.audit import log_action

logger = logging.getLogger(__name__)

S = PrescriptionStatus

OPEN_STATUSES = (S.PENDING.value, S.VERIFIED.value, S.FILLING.value, S.FILLED.value)
TERMINAL_STATUSES = (S.DISPENSED.value, S.CANCELLED.value)

TRANSITIONS: Dict[tuple, str] = {
    (S.PENDING.value, 'verify'): S.VERIFIED.value,
    (S.VERIFIED.value, 'fill'): S.FILLING.value,
    (S.FILLING.value, 'complete_fill'): S.FILLED.value,
    (S.FILLED.value, 'dispense'): S.DISPENSED.value,
}
for _s in OPEN_STATUSES:
    TRANSITIONS[(_s, 'cancel')] = S.CANCELLED.value
    TRANSITIONS[(_s, 'update')] = _s

_REJECTIONS = {
    'verify': 'Prescription cannot be verified in status: {status}',
    'fill': 'Prescription must be verified before filling (status: {status})',
    'complete_fill': 'Prescription is not being filled (status: {status})',
    'dispense': 'Prescription must be filled before dispensing (status: {status})',
    'cancel': 'Cannot cancel {status} prescription',
    'update': 'Cannot modify {status} prescription',
}


def next_status(current: str, operation: str) -> str:
    """Return the status ``operation`` leads to from ``current`` or raise InvalidState."""
    try:
        return TRANSITIONS[(str(current), operation)]
    except KeyError:
        msg = _REJECTIONS.get(operation, 'Operation {op} not allowed in status: {status}')
        raise InvalidState(msg.format(status=current, op=operation), status=str(current), operation=operation)


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------

def _load(prescription_id, *, lock: bool=False) -> Prescription:
    qs = Prescription.objects.all()
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=prescription_id)
    except (Prescription.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFound(f"Prescription {prescription_id} not found")


def _check_version(p: Prescription, expected_version: Optional[int]) -> None:
    if expected_version is not None and int(expected_version) != p.version:
        raise VersionConflict(
            f"Prescription {p.id} is at version {p.version}, expected {expected_version}",
            expected=int(expected_version), current=p.version,
        )


def _items(p: Prescription) -> List[PrescriptionItem]:
    return list(PrescriptionItem.objects.filter(prescription=p).select_related('drug').order_by('position'))


def _commit(p: Prescription, fields: List[str]) -> None:
    p.version += 1
    p.save(update_fields=fields + ['version', 'updated_at'])


def _send_status_event(prescription_id: str, status: str, version: int) -> None:
    payload = {
        'type': 'prescription.status',
        'prescriptionId': prescription_id,
        'status': status,
        'version': version,
        'ts': timezone.now().isoformat(),
    }
    try:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return
        async_to_sync(channel_layer.group_send)(getattr(settings, 'PHARMACY_BROADCAST_GROUP', 'pharmacy'), payload)
    except Exception:
        logger.exception('failed to broadcast status of prescription %s', prescription_id)


def _announce(p: Prescription) -> None:
    pid, status, version = str(p.id), str(p.status), p.version
    transaction.on_commit(lambda: _send_status_event(pid, status, version))


def _audit(actor_id, action: str, p: Prescription, **detail) -> None:
    log_action(actor_id=actor_id, action=action, object_type='prescription', object_id=p.id, detail=detail)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _with_relations(qs):
    return qs.prefetch_related('items__drug', 'note_entries', 'alerts')


def find(prescription_id) -> Prescription:
    try:
        p = _with_relations(Prescription.objects.filter(pk=prescription_id)).first()
    except (DjangoValidationError, ValueError):
        p = None
    if not p:
        raise NotFound(f"Prescription {prescription_id} not found")
    return p


def search(*, status: Optional[str]=None, prescriber_id: Optional[str]=None, patient_id: Optional[str]=None,
           start_date: Optional[date]=None, end_date: Optional[date]=None) -> List[Prescription]:
    qs = Prescription.objects.all()
    if status:
        qs = qs.filter(status=status)
    if prescriber_id:
        qs = qs.filter(prescriber_id=prescriber_id)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    # inclusive on both ends
    if start_date:
        qs = qs.filter(prescription_date__gte=start_date)
    if end_date:
        qs = qs.filter(prescription_date__lte=end_date)
    return list(_with_relations(qs).order_by('-created_at'))


def pending_prescriptions() -> List[Prescription]:
    return list(_with_relations(Prescription.objects.filter(status=S.PENDING)).order_by('created_at'))


def patient_prescriptions(patient_id: str) -> List[Prescription]:
    return list(_with_relations(Prescription.objects.filter(patient_id=patient_id)).order_by('-created_at'))


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def _resolve_drugs(drug_ids) -> Dict[str, Drug]:
    ids = {str(d) for d in drug_ids}
    drugs = {str(d.id): d for d in Drug.objects.filter(id__in=ids)}
    missing = sorted(ids - set(drugs))
    if missing:
        raise ValidationError(f"Unknown drug: {missing[0]}", drugId=missing[0])
    return drugs


def create(*, patient_id: str, patient_name: str, prescriber_id: str, prescriber_name: str,
           items: List[Dict[str, Any]], prescriber_license: str='', prescriber_dea: str='',
           prescription_date: Optional[date]=None, refills_allowed: int=0, notes_text: Optional[str]=None,
           actor_id=None) -> Prescription:
    """Persist a new pending prescription and generate its safety alerts.

    Alert generation is best effort: a failure there is logged and the
    prescription is still returned.
    """
    if not items:
        raise ValidationError('A prescription needs at least one item')
    for it in items:
        if int(it.get('quantity_prescribed') or 0) <= 0:
            raise ValidationError('quantityPrescribed must be a positive integer')
    drugs = _resolve_drugs(it['drug_id'] for it in items)

    with transaction.atomic():
        p = Prescription.objects.create(
            patient_id=str(patient_id),
            patient_name=patient_name,
            prescriber_id=str(prescriber_id),
            prescriber_name=prescriber_name,
            prescriber_license=prescriber_license or '',
            prescriber_dea=prescriber_dea or '',
            prescription_date=prescription_date or timezone.localdate(),
            status=S.PENDING,
            refills_allowed=refills_allowed or 0,
            refills_remaining=refills_allowed or 0,
        )
        PrescriptionItem.objects.bulk_create([
            PrescriptionItem(
                prescription=p,
                drug=drugs[str(it['drug_id'])],
                quantity_prescribed=int(it['quantity_prescribed']),
                quantity_dispensed=0,
                dosage_instructions=it.get('dosage_instructions') or '',
                day_supply=it.get('day_supply'),
                position=pos,
            )
            for pos, it in enumerate(items)
        ])
        if notes_text:
            notes.append_note(p, notes_text, author_id=actor_id or prescriber_id)
        _audit(actor_id, 'prescription_create', p, items=len(items))

        # runs in its own savepoint so a failure leaves the prescription intact
        try:
            safety.generate_alerts(p)
        except Exception:
            logger.exception('safety alert generation failed for prescription %s', p.id)

    logger.info('prescription %s created for patient %s', p.id, p.patient_id)
    _announce(p)
    return find(p.id)


def verify(prescription_id, pharmacist_id, *, actor_id=None,
           expected_version: Optional[int]=None) -> Prescription:
    with transaction.atomic():
        p = _load(prescription_id, lock=True)
        _check_version(p, expected_version)
        target = next_status(p.status, 'verify')

        if safety.has_blocking_alerts(safety.get_alerts(p.id)):
            raise SafetyBlocked()

        # first shortfall in item order wins
        for item in _items(p):
            available = inventory.quantity_available(item.drug_id)
            if available < item.quantity_prescribed:
                raise InsufficientInventory(item.drug.generic_name, available, item.quantity_prescribed)

        previous = p.status
        p.status = target
        p.verified_by = str(pharmacist_id)
        p.verified_at = timezone.now()
        _commit(p, ['status', 'verified_by', 'verified_at'])
        _audit(actor_id or pharmacist_id, 'prescription_verify', p, **{'from': previous, 'to': p.status})
        _announce(p)

    logger.info('prescription %s verified by %s', p.id, pharmacist_id)
    return find(p.id)


def fill(prescription_id, pharmacist_id, *, actor_id=None,
         expected_version: Optional[int]=None) -> Prescription:
    """Deduct stock for every item and log scheduled drugs.

    The whole item loop is one transaction: if any deduction fails the
    prescription stays ``verified`` and no stock or log rows change.
    """
    with transaction.atomic():
        p = _load(prescription_id, lock=True)
        _check_version(p, expected_version)
        p.status = next_status(p.status, 'fill')
        p.save(update_fields=['status', 'updated_at'])

        for item in _items(p):
            inventory.deduct(item.drug_id, item.quantity_prescribed)
            item.quantity_dispensed = item.quantity_prescribed
            item.save(update_fields=['quantity_dispensed'])
            if item.drug.is_controlled:
                controlled.log_dispensing(
                    item.drug_id,
                    p.id,
                    item.quantity_dispensed,
                    p.patient_name,
                    p.prescriber_name,
                    p.prescriber_dea,
                    pharmacist_id,
                )

        p.status = next_status(p.status, 'complete_fill')
        p.filled_by = str(pharmacist_id)
        p.filled_at = timezone.now()
        _commit(p, ['status', 'filled_by', 'filled_at'])
        _audit(actor_id or pharmacist_id, 'prescription_fill', p, **{'from': S.VERIFIED, 'to': p.status})
        _announce(p)

    logger.info('prescription %s filled by %s', p.id, pharmacist_id)
    return find(p.id)


def dispense(prescription_id, pharmacist_id, *, actor_id=None,
             expected_version: Optional[int]=None) -> Prescription:
    with transaction.atomic():
        p = _load(prescription_id, lock=True)
        _check_version(p, expected_version)
        p.status = next_status(p.status, 'dispense')
        p.dispensed_by = str(pharmacist_id)
        p.dispensed_at = timezone.now()
        _commit(p, ['status', 'dispensed_by', 'dispensed_at'])
        _audit(actor_id or pharmacist_id, 'prescription_dispense', p, **{'from': S.FILLED, 'to': p.status})
        _announce(p)

    logger.info('prescription %s dispensed by %s', p.id, pharmacist_id)
    return find(p.id)


def cancel(prescription_id, reason: str, *, actor_id=None, expected_version: Optional[int]=None) -> Prescription:
    """Cancel a prescription that has not been dispensed.

    Cancelling a filled prescription only records that its stock should
    go back to inventory; the ledger is reconciled manually.
    """
    with transaction.atomic():
        p = _load(prescription_id, lock=True)
        _check_version(p, expected_version)
        previous = p.status
        target = next_status(p.status, 'cancel')

        if previous == S.FILLED:
            notes.append_note(p, f"Cancelled: {reason}. Inventory should be returned to stock.", author_id=actor_id)
        notes.append_note(p, f"Cancelled: {reason}", author_id=actor_id)

        p.status = target
        p.cancelled_at = timezone.now()
        _commit(p, ['status', 'cancelled_at'])
        _audit(actor_id, 'prescription_cancel', p, **{'from': previous, 'to': p.status, 'reason': reason})
        _announce(p)

    if previous == S.FILLED:
        logger.warning('filled prescription %s cancelled; stock needs manual return', p.id)
    else:
        logger.info('prescription %s cancelled', p.id)
    return find(p.id)


def update(prescription_id, patch: Dict[str, Any], *, actor_id=None,
           expected_version: Optional[int]=None) -> Prescription:
    """Apply a partial update to a prescription that is still open.

    ``patch`` may carry ``notes`` (replaces the note log),
    ``prescription_date``, ``refills_allowed`` and ``items``, a list of
    per-item changes keyed by item ``id``.
    """
    with transaction.atomic():
        p = _load(prescription_id, lock=True)
        _check_version(p, expected_version)
        next_status(p.status, 'update')
        fields = []

        if patch.get('refills_allowed') is not None:
            new_allowed = int(patch['refills_allowed'])
            used = p.refills_used
            if new_allowed < used:
                raise ValidationError(
                    'refillsAllowed cannot be less than refills already used',
                    refillsUsed=used, refillsAllowed=new_allowed,
                )
            p.refills_allowed = new_allowed
            p.refills_remaining = new_allowed - used
            fields += ['refills_allowed', 'refills_remaining']

        if patch.get('prescription_date'):
            p.prescription_date = patch['prescription_date']
            fields.append('prescription_date')

        item_patches = patch.get('items') or []
        if item_patches:
            owned = {str(it.id): it for it in _items(p)}
            for ip in item_patches:
                if not ip.get('id') or str(ip['id']) not in owned:
                    raise ValidationError(f"Prescription item not found: {ip.get('id')}", itemId=str(ip.get('id')))
            new_drugs = _resolve_drugs(ip['drug_id'] for ip in item_patches if ip.get('drug_id'))
            for ip in item_patches:
                item = owned[str(ip['id'])]
                if ip.get('quantity_prescribed') is not None:
                    if int(ip['quantity_prescribed']) <= 0:
                        raise ValidationError('quantityPrescribed must be a positive integer')
                    item.quantity_prescribed = int(ip['quantity_prescribed'])
                if ip.get('dosage_instructions') is not None:
                    item.dosage_instructions = ip['dosage_instructions']
                if ip.get('day_supply') is not None:
                    item.day_supply = ip['day_supply']
                if ip.get('drug_id'):
                    item.drug = new_drugs[str(ip['drug_id'])]
                item.save()

        if 'notes' in patch and patch['notes'] is not None:
            notes.replace_notes(p, patch['notes'])

        _commit(p, fields)
        _audit(actor_id, 'prescription_update', p, fields=sorted(k for k, v in patch.items() if v is not None))

    return find(p.id)


def add_note(prescription_id, text: str, author_id: Optional[str]=None) -> Prescription:
    with transaction.atomic():
        p = _load(prescription_id, lock=True)
        entry = notes.append_note(p, text, author_id=author_id)
        _commit(p, [])
        _audit(entry.author_id, 'prescription_note', p, position=entry.position)
    return find(p.id)


def get_notes(prescription_id) -> List[notes.NoteEntry]:
    return notes.entries_for(_load(prescription_id))


def alerts_for(prescription_id) -> List[SafetyAlert]:
    _load(prescription_id)
    return safety.get_alerts(prescription_id)
