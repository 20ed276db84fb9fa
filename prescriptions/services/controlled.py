from typing import Optional

from prescriptions.models import ControlledSubstanceLog


def log_dispensing(drug_id, prescription_id, quantity: int, patient_name: str, prescriber_name: str,
                   prescriber_dea: Optional[str], pharmacist_id) -> ControlledSubstanceLog:
    return ControlledSubstanceLog.objects.create(
        drug_id=drug_id,
        prescription_id=prescription_id,
        quantity=quantity,
        patient_name=patient_name,
        prescriber_name=prescriber_name,
        prescriber_dea=prescriber_dea or '',
        pharmacist_id=str(pharmacist_id),
    )
