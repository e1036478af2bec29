"""Listing storage for the knowledge marketplace."""

from .base import ListingStore, PackageListing, PackageRating, SaleRecord
from .duckdb import DuckDBListingStore

__all__ = [
    "ListingStore",
    "PackageListing",
    "PackageRating",
    "SaleRecord",
    "DuckDBListingStore",
]
