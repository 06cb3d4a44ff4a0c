"""
Central constants for the onboarding document service.
"""
from __future__ import annotations

# Uploaded contracts are capped at 10 MiB.
MAX_PDF_BYTES = 10 * 1024 * 1024

# Company membership roles
ROLE_ADMINISTRATOR = "administrator"
ROLE_LAWYER = "lawyer"
ROLE_CONTRACTOR = "contractor"
MEMBERSHIP_ROLES = (ROLE_ADMINISTRATOR, ROLE_LAWYER, ROLE_CONTRACTOR)

# Signature titles
COMPANY_REPRESENTATIVE = "Company Representative"

DOCUMENT_TYPES = (
    "ConsultingContract",
    "EquityPlanContract",
    "ShareCertificate",
    "TaxDocument",
    "ExerciseNotice",
    "ReleaseAgreement",
)
TEMPLATE_TYPES = ("ConsultingContract", "EquityPlanContract")
