# Division -> departments/sections, used for cascading registration dropdowns.
# Divisions with an empty list have no sub-units.
ORGANIZATIONAL_STRUCTURE: dict[str, list[str]] = {
    "Clinical Division": [
        "Department of Anaesthesiology",
        "Department of Emergency, Pre-hospital and Disaster Medicine",
        "Department of Family and Community Medicine",
        "Department of Internal Medicine",
        "Department of Obstetrics and Gynecology",
        "Department of Otorhinolaryngology – Head and Neck Surgery",
        "Department of Ophthalmology",
        "Department of Pathology and Laboratories",
        "Department of Pediatrics",
        "Department of Radiology",
        "Department of Physical and Rehabilitation Medicine",
        "Department of Surgery",
        "Graduate Medical Education",
    ],
    "Ancillary Division": [
        "Cardiovascular Diagnostic Section",
        "Respiratory Diagnostic Section",
        "Laboratory Section",
        "Radiology Section",
        "Physical and Occupational Therapy Section",
        "Others",
    ],
    "Nursing Division": [],
    "Quality Assurance Division": [
        "Infection Prevention and Control Section",
        "Patient Safety and Risk Management Section",
        "Program Planning and Management Section",
        "Regulation and Accreditation Section",
        "Process and Performance Improvement Section",
    ],
    "Central Information Management Division": [
        "Admitting and Information Section",
        "Health Records & Documentation Management Section",
        "Communication Section",
        "Information Technology Section",
        "Others",
    ],
    "Internal Administrative Division": [
        "Human Resource Management Section",
        "Legal/Medico-legal Section",
        "General Service Section",
        "Property Management Section",
        "Requisition Section",
        "Supply Management Section",
        "Others",
    ],
    "Allied Health Division": [
        "Food and Nutrition Management Section",
        "Pharmacy Section",
        "Medical Social Service Section",
        "Patient Experience Management Section",
        "Housekeeping / Laundry and Linen Section",
        "Chaplaincy Section",
        "Others",
    ],
    "Research Development and Innovation Division": [],
    "Financial Management Division": [
        "Accounting Section",
        "Budget Section",
        "Cash Management Section",
        "Billing Section",
        "Claims Section",
    ],
    "Medical Directors Office": [],
}


def get_departments(division: str) -> list[str]:
    return list(ORGANIZATIONAL_STRUCTURE.get(division, []))


def is_valid_placement(division: str, department: str) -> bool:
    """
    True when `division` is known and `department` is one of its sub-units,
    or empty for a division that has none.
    """
    if division not in ORGANIZATIONAL_STRUCTURE:
        return False
    departments = ORGANIZATIONAL_STRUCTURE[division]
    if not departments:
        return department == ""
    return department in departments


class RegistrationError(ValueError):
    pass


def validate_placement(division: str, department: str) -> None:
    """
    :raises RegistrationError: if the division is unknown or the department does not belong to it
    """
    if division not in ORGANIZATIONAL_STRUCTURE:
        raise RegistrationError(f"Unknown division '{division}'.")
    if not is_valid_placement(division, department):
        raise RegistrationError(f"'{department}' is not a department or section of {division}.")
