"""
Data models for order-history scraping.
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Credential:
    """Secrets for one request. Masked in repr so it never reaches a log line."""
    token: Optional[str] = field(default=None, repr=False)
    username: Optional[str] = field(default=None, repr=False)
    password: Optional[str] = field(default=None, repr=False)

    @property
    def is_token(self) -> bool:
        return self.token is not None


@dataclass(frozen=True)
class DateRange:
    """Inclusive purchase date window."""
    start_date: date
    end_date: date

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class ImportOptions:
    """Which classes of order to keep when a retailer offers filters."""
    include_returns: bool = True
    include_digital: bool = True
    include_subscriptions: bool = True

    def excluded(self) -> Dict[str, bool]:
        return {
            "returns": not self.include_returns,
            "digital": not self.include_digital,
            "subscriptions": not self.include_subscriptions,
        }


@dataclass
class RawRecord:
    """Loosely-typed fields read straight from an order page."""
    external_id: str
    name_text: str
    price_text: str
    date_text: str
    retailer: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class CanonicalProduct:
    """Retailer-agnostic purchase record returned to callers."""
    external_id: str
    name: str
    price: float
    purchase_date: str
    retailer: str
    category: str
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return asdict(self)
