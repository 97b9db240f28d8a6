"""Database models."""

from clinicflow.models.appointments import appointments
from clinicflow.models.clinical_records import assessment_results, soap_notes
from clinicflow.models.patients import patients
from clinicflow.models.users import users

__all__ = [
    "appointments",
    "assessment_results",
    "patients",
    "soap_notes",
    "users",
]
