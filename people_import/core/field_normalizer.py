"""Field Name Normalizer — persistence-time reconciliation of record keys.

Runs on every record right before it is saved, whatever produced it. The
alias table is separate from the spreadsheet header table: it matches
exact keys only and covers English and French variants.
"""

from types import MappingProxyType
from typing import Any, Mapping

FIELD_ALIASES = MappingProxyType({
    # External ID
    "id": "external_id",
    "ID": "external_id",
    "identifier": "external_id",
    "Identifier": "external_id",
    "External ID": "external_id",
    "External Id": "external_id",
    "EXTERNAL_ID": "external_id",

    # Full name
    "Name": "name",
    "NAME": "name",

    # First name
    "First Name": "first_name",
    "FirstName": "first_name",
    "firstname": "first_name",
    "firstName": "first_name",
    "FIRST_NAME": "first_name",
    "prenom": "first_name",

    # Last name
    "Last Name": "last_name",
    "LastName": "last_name",
    "lastname": "last_name",
    "lastName": "last_name",
    "LAST_NAME": "last_name",
    "nom": "last_name",

    # Birth date
    "Birth Date": "birth_date",
    "BirthDate": "birth_date",
    "birthdate": "birth_date",
    "birthDate": "birth_date",
    "BIRTH_DATE": "birth_date",
    "date_of_birth": "birth_date",
    "Date of Birth": "birth_date",
    "DOB": "birth_date",

    # Status
    "Status": "status",
    "STATUS": "status",
    "statut": "status",
})


def reconcile(record: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of record with aliased keys renamed and name fields derived.

    A full name with at least two tokens fills a missing last_name (first
    token) and first_name (remaining tokens). Both components fill a missing
    name as "{last_name} {first_name}". Unknown keys pass through unchanged.
    Idempotent.
    """
    normalized = dict(record)

    for key, value in record.items():
        canonical = FIELD_ALIASES.get(key)
        if canonical is None:
            continue
        normalized[canonical] = value
        if key != canonical:
            normalized.pop(key, None)

    name = normalized.get("name")
    if name and (not normalized.get("first_name") or not normalized.get("last_name")):
        parts = str(name).split()
        if len(parts) >= 2:
            if not normalized.get("last_name"):
                normalized["last_name"] = parts[0]
            if not normalized.get("first_name"):
                normalized["first_name"] = " ".join(parts[1:])

    if not normalized.get("name") and normalized.get("first_name") and normalized.get("last_name"):
        normalized["name"] = f"{normalized['last_name']} {normalized['first_name']}".strip()

    return normalized
