"""Controlled vocabularies shared by forms and the import pipeline."""
from __future__ import annotations

from typing import Iterable, List, Optional


CATEGORY_LIST: List[str] = [
    "OPEX - Office Supplies",
    "OPEX - Utilities",
    "OPEX - Rent or Lease Costs",
    "OPEX - Maintenance and Repairs",
    "OPEX - Transportation Costs",
    "CAPEX - Equipment Purchase",
    "CAPEX - Infrastructure Upgrades",
    "CAPEX - IT Hardware and Systems",
    "CAPEX - Furniture and Fixtures",
    "CAPEX - Real Estate Investments",
    "EE - Salaries and Wages",
    "EE - Employee Benefits",
    "EE - Training and Development",
    "EE - Recruitment Costs",
    "EE - Team Building Activities",
    "EE - Salary Increment Plan",
    "MKT - Digital Advertising",
    "MKT - Content Creation",
    "MKT - Event Sponsorships",
    "MKT - Trade Shows and Exhibitions",
    "MKT - Marketing Merchandise",
    "TEC - Software Subscriptions / SaaS Licenses",
    "TEC - IT Support Services",
    "TEC - Cybersecurity Tools",
    "COM - Regulatory Compliance Fees",
    "COM - Licenses and Permits",
    "COM - Legal Consultation Fees",
    "COM - Audit Services",
    "TEEX - Business Travel",
    "TEEX - Client Entertainment",
    "TEEX - Meals and Hospitality",
    "MISC - Contingency Funds",
    "MISC - Donations and Sponsorships",
    "MISC - Unexpected Expenses",
    "MISC - Miscellaneous Administrative Costs",
]

TEAM_LIST: List[str] = [
    "Finance",
    "Marketing",
    "Business Development",
    "Strategy",
    "Product & Engineering",
    "People & Culture",
    "Account Management",
    "Compliance",
    "Solutions",
]


def match_vocabulary(value: Optional[str], vocabulary: Iterable[str]) -> Optional[str]:
    """Return the canonical vocabulary entry equal to ``value`` ignoring case.

    Leading/trailing whitespace is ignored. Returns None when nothing matches.
    """

    if value is None:
        return None
    key = str(value).strip().lower()
    if not key:
        return None
    for entry in vocabulary:
        if entry.lower() == key:
            return entry
    return None
