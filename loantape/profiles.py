"""
SSOT for NBFC portfolio profiles and the geography they lend into.

4 size buckets (small / medium / large / xlarge), 3 risk tiers,
18 states with 5 cities each. Validated once at import; a broken profile is
a configuration defect and raises CatalogConfigError immediately.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from loantape.errors import CatalogConfigError


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RISK_TIERS = ("Conservative", "Moderate", "Aggressive")

# Sentinel geographic scope: every known state is eligible.
NATIONWIDE = "Pan India"

PRODUCT_MIX_TOLERANCE = 1e-6


# ---------------------------------------------------------------------------
# Geography (18 states, cities in display order)
# ---------------------------------------------------------------------------

STATES = (
    "Maharashtra", "Gujarat", "Karnataka", "Tamil Nadu", "Delhi", "West Bengal",
    "Rajasthan", "Uttar Pradesh", "Madhya Pradesh", "Andhra Pradesh", "Telangana",
    "Kerala", "Punjab", "Haryana", "Odisha", "Jharkhand", "Assam", "Bihar",
)

CITIES = {
    "Maharashtra": ("Mumbai", "Pune", "Nagpur", "Nashik", "Aurangabad"),
    "Gujarat": ("Ahmedabad", "Surat", "Vadodara", "Rajkot", "Gandhinagar"),
    "Karnataka": ("Bangalore", "Mysore", "Hubli", "Mangalore", "Belgaum"),
    "Tamil Nadu": ("Chennai", "Coimbatore", "Madurai", "Salem", "Tiruchirappalli"),
    "Delhi": ("New Delhi", "Delhi", "Gurgaon", "Noida", "Faridabad"),
    "West Bengal": ("Kolkata", "Howrah", "Durgapur", "Asansol", "Siliguri"),
    "Rajasthan": ("Jaipur", "Jodhpur", "Udaipur", "Kota", "Ajmer"),
    "Uttar Pradesh": ("Lucknow", "Kanpur", "Agra", "Varanasi", "Meerut"),
    "Madhya Pradesh": ("Bhopal", "Indore", "Gwalior", "Jabalpur", "Ujjain"),
    "Andhra Pradesh": ("Visakhapatnam", "Vijayawada", "Guntur", "Nellore", "Kurnool"),
    "Telangana": ("Hyderabad", "Warangal", "Nizamabad", "Karimnagar", "Khammam"),
    "Kerala": ("Thiruvananthapuram", "Kochi", "Kozhikode", "Thrissur", "Kollam"),
    "Punjab": ("Chandigarh", "Ludhiana", "Amritsar", "Jalandhar", "Patiala"),
    "Haryana": ("Gurgaon", "Faridabad", "Panipat", "Ambala", "Karnal"),
    "Odisha": ("Bhubaneswar", "Cuttack", "Rourkela", "Berhampur", "Sambalpur"),
    "Jharkhand": ("Ranchi", "Jamshedpur", "Dhanbad", "Bokaro", "Deoghar"),
    "Assam": ("Guwahati", "Silchar", "Dibrugarh", "Jorhat", "Nagaon"),
    "Bihar": ("Patna", "Gaya", "Bhagalpur", "Muzaffarpur", "Purnia"),
}


class GeographyCatalog:
    """Read-only region -> city lookup."""

    def __init__(self, regions: Sequence[str] = STATES,
                 cities: Optional[Dict[str, Sequence[str]]] = None):
        self.regions: Tuple[str, ...] = tuple(regions)
        source = CITIES if cities is None else cities
        self._cities = {region: tuple(names) for region, names in source.items() if names}

    def cities_for(self, region: str) -> Tuple[str, ...]:
        """Cities of a region; unknown regions stand in as their own city."""
        return self._cities.get(region, (region,))

    def __contains__(self, region):
        return region in self._cities


DEFAULT_GEOGRAPHY = GeographyCatalog()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PortfolioProfile:
    size_bucket_label: str               # "Less than ₹1,000 Cr"
    size_bucket_range_label: str         # "₹500-999 Cr"
    avg_loan_size: float                 # ₹, base unit for amount scaling
    total_loan_count: int
    total_portfolio_value: float         # informational, never recomputed
    risk_tier: str                       # one of RISK_TIERS
    geographic_scope: Tuple[str, ...]    # or (NATIONWIDE,)
    product_mix: Tuple[Tuple[str, float], ...]  # ordered (product, weight)

    @property
    def is_nationwide(self) -> bool:
        return NATIONWIDE in self.geographic_scope

    def product_weights(self) -> Dict[str, float]:
        return dict(self.product_mix)


def validate_profile(key: str, profile: PortfolioProfile) -> None:
    """Raise CatalogConfigError if the profile breaks a catalog invariant."""
    if not profile.product_mix:
        raise CatalogConfigError(f"profile {key!r}: product mix is empty")
    for product, weight in profile.product_mix:
        if not 0 < weight <= 1:
            raise CatalogConfigError(
                f"profile {key!r}: weight {weight} for {product!r} outside (0, 1]")
    total = math.fsum(weight for _, weight in profile.product_mix)
    if abs(total - 1.0) > PRODUCT_MIX_TOLERANCE:
        raise CatalogConfigError(
            f"profile {key!r}: product mix sums to {total:.6f}, expected 1.0")
    if not profile.geographic_scope:
        raise CatalogConfigError(f"profile {key!r}: geographic scope is empty")
    if profile.avg_loan_size <= 0:
        raise CatalogConfigError(f"profile {key!r}: average loan size must be positive")
    if profile.total_loan_count <= 0:
        raise CatalogConfigError(f"profile {key!r}: total loan count must be positive")
    if profile.risk_tier not in RISK_TIERS:
        raise CatalogConfigError(f"profile {key!r}: unknown risk tier {profile.risk_tier!r}")


class ProfileCatalog:
    """Immutable, validated mapping of profile key -> PortfolioProfile."""

    def __init__(self, profiles: Sequence[Tuple[str, PortfolioProfile]]):
        entries = tuple(profiles)
        keys = [key for key, _ in entries]
        if len(set(keys)) != len(keys):
            raise CatalogConfigError(f"duplicate profile keys in {keys}")
        for key, profile in entries:
            validate_profile(key, profile)
        self._entries = entries
        self._by_key = dict(entries)

    def list_profiles(self) -> List[Tuple[str, PortfolioProfile]]:
        return list(self._entries)

    def keys(self) -> List[str]:
        return [key for key, _ in self._entries]

    def get(self, key: str) -> PortfolioProfile:
        try:
            return self._by_key[key]
        except KeyError:
            raise KeyError(f"unknown profile {key!r}; expected one of {self.keys()}") from None

    def __iter__(self) -> Iterator[Tuple[str, PortfolioProfile]]:
        return iter(self._entries)

    def __len__(self):
        return len(self._entries)


# ---------------------------------------------------------------------------
# 4 profile definitions
# ---------------------------------------------------------------------------

PROFILE_DEFINITIONS: List[Tuple[str, PortfolioProfile]] = [
    # -----------------------------------------------------------------------
    # small — regional, conservative, unsecured-heavy
    # -----------------------------------------------------------------------
    ("small", PortfolioProfile(
        size_bucket_label="Less than ₹1,000 Cr",
        size_bucket_range_label="₹500-999 Cr",
        avg_loan_size=250_000,           # 2.5L
        total_loan_count=2_500,
        total_portfolio_value=62_500_000_000,   # 625 Cr
        risk_tier="Conservative",
        geographic_scope=("Maharashtra", "Gujarat", "Karnataka"),
        product_mix=(
            ("Personal Loan", 0.40),
            ("Business Loan", 0.30),
            ("Vehicle Loan", 0.20),
            ("Gold Loan", 0.10),
        ),
    )),
    # -----------------------------------------------------------------------
    # medium — west + south + NCR, adds home loans
    # -----------------------------------------------------------------------
    ("medium", PortfolioProfile(
        size_bucket_label="Less than ₹5,000 Cr",
        size_bucket_range_label="₹2,000-4,999 Cr",
        avg_loan_size=450_000,           # 4.5L
        total_loan_count=7_500,
        total_portfolio_value=337_500_000_000,  # 3,375 Cr
        risk_tier="Moderate",
        geographic_scope=("Maharashtra", "Gujarat", "Karnataka", "Tamil Nadu", "Delhi"),
        product_mix=(
            ("Personal Loan", 0.35),
            ("Business Loan", 0.25),
            ("Vehicle Loan", 0.15),
            ("Home Loan", 0.15),
            ("Gold Loan", 0.10),
        ),
    )),
    # -----------------------------------------------------------------------
    # large — 7 states
    # -----------------------------------------------------------------------
    ("large", PortfolioProfile(
        size_bucket_label="Less than ₹10,000 Cr",
        size_bucket_range_label="₹6,000-9,999 Cr",
        avg_loan_size=650_000,           # 6.5L
        total_loan_count=12_000,
        total_portfolio_value=780_000_000_000,  # 7,800 Cr
        risk_tier="Moderate",
        geographic_scope=("Maharashtra", "Gujarat", "Karnataka", "Tamil Nadu", "Delhi",
                          "West Bengal", "Rajasthan"),
        product_mix=(
            ("Personal Loan", 0.30),
            ("Business Loan", 0.25),
            ("Vehicle Loan", 0.15),
            ("Home Loan", 0.20),
            ("Gold Loan", 0.10),
        ),
    )),
    # -----------------------------------------------------------------------
    # xlarge — nationwide, aggressive, corporate book instead of gold
    # -----------------------------------------------------------------------
    ("xlarge", PortfolioProfile(
        size_bucket_label="Greater than ₹10,000 Cr",
        size_bucket_range_label="₹15,000+ Cr",
        avg_loan_size=1_200_000,         # 12L
        total_loan_count=20_000,
        total_portfolio_value=2_400_000_000_000,  # 24,000 Cr
        risk_tier="Aggressive",
        geographic_scope=(NATIONWIDE,),
        product_mix=(
            ("Personal Loan", 0.25),
            ("Business Loan", 0.30),
            ("Vehicle Loan", 0.15),
            ("Home Loan", 0.20),
            ("Corporate Loan", 0.10),
        ),
    )),
]

DEFAULT_CATALOG = ProfileCatalog(PROFILE_DEFINITIONS)
