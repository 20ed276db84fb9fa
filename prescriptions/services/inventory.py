"""
Inventory ledger backed by per-drug stock lots.

Available quantity is the sum of non-expired lots.  Deductions lock the
drug's lots and consume them first-expiring-first-out; a deduction
either takes the full quantity or nothing.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from django.db import transaction
from django.db.models import F, Q, Sum
from django.utils import timezone

from prescriptions.exceptions import InsufficientInventory, NotFound, ValidationError
from prescriptions.models import Drug, InventoryLot

logger = logging.getLogger(__name__)


def _usable_lots(drug_id, today: Optional[date]=None):
    today = today or timezone.localdate()
    return InventoryLot.objects.filter(drug_id=drug_id, quantity__gt=0).filter(
        Q(expiration_date__isnull=True) | Q(expiration_date__gte=today)
    )


def _drug_label(drug_id) -> str:
    drug = Drug.objects.filter(id=drug_id).only('generic_name').first()
    return drug.generic_name if drug else str(drug_id)


def quantity_available(drug_id) -> int:
    total = _usable_lots(drug_id).aggregate(total=Sum('quantity'))['total']
    return int(total or 0)


@transaction.atomic
def deduct(drug_id, qty: int) -> int:
    """Remove ``qty`` units of a drug from stock and return the new total."""
    if qty is None or int(qty) <= 0:
        raise ValidationError('deduction quantity must be positive')
    qty = int(qty)
    # FEFO: dated lots by expiry, undated lots last, then receipt order
    lots = list(
        _usable_lots(drug_id).select_for_update()
        .order_by(F('expiration_date').asc(nulls_last=True), 'received_at', 'id')
    )
    available = sum(lot.quantity for lot in lots)
    if available < qty:
        raise InsufficientInventory(_drug_label(drug_id), available, qty)

    remaining = qty
    for lot in lots:
        if remaining == 0:
            break
        take = min(lot.quantity, remaining)
        lot.quantity -= take
        lot.save(update_fields=['quantity'])
        remaining -= take
    logger.info('deducted %s units of drug %s (remaining %s)', qty, drug_id, available - qty)
    return available - qty


def receive_stock(drug_id, quantity: int, *, lot_number: str='', expiration_date: Optional[date]=None) -> InventoryLot:
    if quantity is None or int(quantity) <= 0:
        raise ValidationError('received quantity must be positive')
    if not Drug.objects.filter(id=drug_id).exists():
        raise NotFound(f"Drug {drug_id} not found")
    return InventoryLot.objects.create(
        drug_id=drug_id, quantity=int(quantity), lot_number=lot_number or '', expiration_date=expiration_date,
    )
