"""
Retailer detection from invoice numbers and sales-staff referral codes
"""

import re
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RetailerInfo:
    code: str
    name: str
    full_name: str
    color: str
    invoice_formats: tuple[str, ...]
    referral_code_prefix: str
    store_locations: dict[str, str] = field(default_factory=dict)


@dataclass
class ParsedInvoice:
    retailer_code: str
    invoice_number: str
    retailer: RetailerInfo
    store_code: Optional[str] = None


@dataclass
class ParsedReferralCode:
    retailer_code: str
    original_code: str
    retailer: RetailerInfo
    store_code: Optional[str] = None
    staff_name: Optional[str] = None


_MAJOR_CITIES = {
    "DUB": "Dublin",
    "CRK": "Cork",
    "GAL": "Galway",
    "LIM": "Limerick",
}

RETAILERS: dict[str, RetailerInfo] = {
    "HN": RetailerInfo(
        code="HN",
        name="Harvey Norman",
        full_name="Harvey Norman",
        color="#e63946",
        invoice_formats=("HN-{STORE}-{NUMBER}", "HN{STORE}{NUMBER}"),
        referral_code_prefix="HN",
        store_locations={
            "BLA": "Blanchardstown",
            "CKM": "Carrickmines",
            "CRK": "Cork",
            "CAS": "Castlebar",
            "DRO": "Drogheda",
            "FON": "Fonthill",
            "GAL": "Galway",
            "KIN": "Kinsale Road",
            "LIM": "Limerick",
            "LIT": "Little Island",
            "NAA": "Naas",
            "RAT": "Rathfarnham",
            "SLI": "Sligo",
            "SWO": "Swords",
            "TAL": "Tallaght",
            "TRA": "Tralee",
            "WAT": "Waterford",
        },
    ),
    "CR": RetailerInfo(
        code="CR",
        name="Currys",
        full_name="Currys PC World",
        color="#0066cc",
        invoice_formats=("CR-{STORE}-{NUMBER}", "CR{STORE}{NUMBER}", "CU-{NUMBER}"),
        referral_code_prefix="CR",
        store_locations={
            **_MAJOR_CITIES,
            "WAT": "Waterford",
            "BLA": "Blanchardstown",
            "TAL": "Tallaght",
            "SWO": "Swords",
        },
    ),
    "DD": RetailerInfo(
        code="DD",
        name="DID Electrical",
        full_name="DID Electrical",
        color="#ff6b35",
        invoice_formats=("DD-{STORE}-{NUMBER}", "DD{STORE}{NUMBER}", "DID-{NUMBER}"),
        referral_code_prefix="DD",
        store_locations={
            **_MAJOR_CITIES,
            "WAT": "Waterford",
            "ATH": "Athlone",
            "DRO": "Drogheda",
            "KIL": "Kilkenny",
        },
    ),
    "PC": RetailerInfo(
        code="PC",
        name="Power City",
        full_name="Power City",
        color="#00a651",
        invoice_formats=("PC-{STORE}-{NUMBER}", "PC{STORE}{NUMBER}", "PWR-{NUMBER}"),
        referral_code_prefix="PC",
        store_locations={
            **_MAJOR_CITIES,
            "WAT": "Waterford",
            "BLA": "Blanchardstown",
            "TAL": "Tallaght",
            "CAS": "Castlebar",
        },
    ),
    "AR": RetailerInfo(
        code="AR",
        name="Argos",
        full_name="Argos Ireland",
        color="#e60012",
        invoice_formats=("AR-{NUMBER}", "ARG-{NUMBER}", "AG{NUMBER}"),
        referral_code_prefix="AR",
        store_locations={**_MAJOR_CITIES, "WAT": "Waterford"},
    ),
    "EX": RetailerInfo(
        code="EX",
        name="Expert",
        full_name="Expert Electrical",
        color="#1e3a8a",
        invoice_formats=("EX-{STORE}-{NUMBER}", "EX{STORE}{NUMBER}", "EXP-{NUMBER}"),
        referral_code_prefix="EX",
        store_locations=dict(_MAJOR_CITIES),
    ),
}

# Short-form invoice prefixes some retailers print instead of their code
ALTERNATE_INVOICE_PREFIXES = {
    "DD": "DID",
    "PC": "PWR",
    "AR": "ARG",
}


class RetailerDetectionService:
    """Parses retailer invoice numbers and referral codes"""

    def __init__(self, retailers: Optional[dict[str, RetailerInfo]] = None):
        self.retailers = retailers if retailers is not None else RETAILERS

    def detect_retailer_from_invoice(self, invoice_number: str) -> Optional[ParsedInvoice]:
        """
        Match an invoice number against each retailer's formats.

        Accepted per retailer ``XX``: ``XX-STORE-NNNN``, ``XXSTORENNNN`` (store is
        2-4 letters, number 4-8 digits) and ``XX-NNNN``, plus the short-form
        prefixes in ``ALTERNATE_INVOICE_PREFIXES``.
        """
        value = (invoice_number or "").upper().strip()

        for code, retailer in self.retailers.items():
            match = re.match(rf"^{code}-([A-Z]{{2,4}})-(\d{{4,8}})$", value) or re.match(
                rf"^{code}([A-Z]{{2,4}})(\d{{4,8}})$", value
            )
            if match:
                return ParsedInvoice(
                    retailer_code=code,
                    store_code=match.group(1),
                    invoice_number=match.group(2),
                    retailer=retailer,
                )

            match = re.match(rf"^{code}-(\d{{4,8}})$", value)
            if match:
                return ParsedInvoice(retailer_code=code, invoice_number=match.group(1), retailer=retailer)

            alternate = ALTERNATE_INVOICE_PREFIXES.get(code)
            if alternate:
                match = re.match(rf"^{alternate}-(\d{{4,8}})$", value)
                if match:
                    return ParsedInvoice(retailer_code=code, invoice_number=match.group(1), retailer=retailer)

        return None

    def detect_retailer_from_referral_code(self, referral_code: str) -> Optional[ParsedReferralCode]:
        """Split a code like ``HNCKMDOUG`` into retailer, store and staff name"""
        value = (referral_code or "").upper().strip()

        for code, retailer in self.retailers.items():
            if not value.startswith(code):
                continue

            remaining = value[len(code):]
            store_code = None
            staff_name = None

            candidates = [store for store in retailer.store_locations if remaining.startswith(store)]
            if candidates:
                store_code = max(candidates, key=len)
                staff_name = remaining[len(store_code):] or None
            elif remaining:
                staff_name = remaining

            return ParsedReferralCode(
                retailer_code=code,
                store_code=store_code,
                staff_name=staff_name,
                retailer=retailer,
                original_code=referral_code,
            )

        return None

    def get_store_name(self, retailer_code: str, store_code: Optional[str] = None) -> str:
        retailer = self.retailers.get(retailer_code)
        if not retailer:
            return "Unknown Store"
        if store_code and store_code in retailer.store_locations:
            return f"{retailer.full_name} {retailer.store_locations[store_code]}"
        return retailer.full_name

    def generate_referral_code(self, retailer_code: str, store_code: str, staff_name: str) -> str:
        retailer = self.retailers.get(retailer_code)
        prefix = retailer.referral_code_prefix if retailer else "RT"
        return f"{prefix}{store_code}{staff_name}".upper()

    def get_all_retailers(self) -> list[RetailerInfo]:
        return list(self.retailers.values())

    def get_retailer(self, code: str) -> Optional[RetailerInfo]:
        return self.retailers.get(code)

    def is_valid_invoice_format(self, invoice_number: str) -> bool:
        return self.detect_retailer_from_invoice(invoice_number) is not None


retailer_detection_service = RetailerDetectionService()
