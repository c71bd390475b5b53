"""
Retailer order-history scraping engine.

Authenticates against a retailer front end, walks the order history pages
and returns normalized purchase records.
"""

from .core.errors import ErrorKind, ScrapeError
from .core.models import CanonicalProduct, Credential, DateRange, ImportOptions
from .importer import ImportRequest, ImportResult, InvalidImportRequest, OrderImporter
from .retailers import AuthMode, RetailerProfile, profile_for

__version__ = "1.0.0"

__all__ = [
    "AuthMode",
    "CanonicalProduct",
    "Credential",
    "DateRange",
    "ErrorKind",
    "ImportOptions",
    "ImportRequest",
    "ImportResult",
    "InvalidImportRequest",
    "OrderImporter",
    "RetailerProfile",
    "ScrapeError",
    "profile_for",
]
