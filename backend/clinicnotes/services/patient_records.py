from __future__ import annotations
from typing import Any, Dict, Optional

from clinicnotes.models import Patient
from clinicnotes.schemas import PatientCreate, PatientUpdate, PatientOut
from clinicnotes.services.security import (
    encrypt_json, decrypt_json, hash_for_search, sanitize_input,
)

# encrypted_data 안에만 저장되는 필드
PII_FIELDS = ("id_number", "first_name", "last_name", "date_of_birth", "emergency_contact")
FREE_TEXT_FIELDS = ("primary_diagnosis", "referral_source", "insurance_provider")


def _clean(values: Dict[str, Any]) -> Dict[str, Any]:
    for f in FREE_TEXT_FIELDS + ("first_name", "last_name"):
        if isinstance(values.get(f), str):
            values[f] = sanitize_input(values[f])
    ec = values.get("emergency_contact")
    if isinstance(ec, dict):
        values["emergency_contact"] = {k: sanitize_input(v) for k, v in ec.items()}
    return values


def new_patient_values(payload: PatientCreate, patient_code: str) -> Dict[str, Any]:
    data = _clean(payload.model_dump(mode="json"))
    pii = {k: data.pop(k) for k in PII_FIELDS}
    return {
        **data,
        "patient_code": patient_code,
        "id_number_hash": hash_for_search(payload.id_number),
        "encrypted_data": encrypt_json(pii),
    }


def updated_patient_values(patient: Patient, payload: PatientUpdate) -> Dict[str, Any]:
    data = _clean(payload.model_dump(mode="json", exclude_unset=True))
    pii_changes = {k: data.pop(k) for k in PII_FIELDS if k in data}
    if pii_changes:
        pii = decrypt_json(patient.encrypted_data)
        pii.update(pii_changes)
        data["encrypted_data"] = encrypt_json(pii)
    return data


def patient_pii(patient: Patient) -> Dict[str, Any]:
    return decrypt_json(patient.encrypted_data)


def patient_display_name(patient: Patient) -> str:
    pii = patient_pii(patient)
    return f"{pii.get('first_name', '')} {pii.get('last_name', '')}".strip()


def patient_to_out(patient: Patient, pii: Optional[Dict[str, Any]] = None) -> PatientOut:
    pii = pii or patient_pii(patient)
    return PatientOut(
        id=patient.id,
        patient_code=patient.patient_code,
        id_number=pii["id_number"],
        first_name=pii["first_name"],
        last_name=pii["last_name"],
        date_of_birth=pii["date_of_birth"],
        gender=patient.gender,
        primary_diagnosis=patient.primary_diagnosis,
        referral_source=patient.referral_source,
        insurance_provider=patient.insurance_provider,
        emergency_contact=pii.get("emergency_contact"),
        assigned_therapists=list(patient.assigned_therapists or []),
        status=patient.status,
        created_at=patient.created_at,
        updated_at=patient.updated_at,
    )
