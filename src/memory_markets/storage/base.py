"""
Listing store interfaces and record types for the marketplace registry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class PackageListing:
    """A knowledge package listed on the marketplace."""

    id: str
    name: str
    description: str = ""
    tags: str = ""
    price: float = 0.0
    package_path: str = ""
    creator_address: str | None = None
    token_address: str | None = None
    file_count: int = 0
    chunk_count: int = 0
    entity_count: int = 0
    times_sold: int = 0
    created_at: str | None = None

    @property
    def tag_list(self) -> list[str]:
        return [tag.strip() for tag in self.tags.split(",") if tag.strip()]

    def summary_text(self) -> str:
        """Text embedded for semantic discovery of this listing."""
        parts = [self.name, self.description]
        if self.tag_list:
            parts.append("Tags: " + ", ".join(self.tag_list))
        return "\n".join(part for part in parts if part)


@dataclass(frozen=True)
class SaleRecord:
    """A recorded purchase of a package."""

    id: int
    package_id: str
    buyer_address: str
    amount: float
    tx_hash: str
    created_at: str


@dataclass(frozen=True)
class PackageRating:
    """Aggregate star rating for a package."""

    average: float
    count: int


class ListingStore(Protocol):
    """Protocol for the keyed listing records consumed by marketplace search."""

    def list_package(self, listing: PackageListing) -> None:
        """Insert a listing or update the existing one with the same id."""

    def get_package(self, package_id: str) -> PackageListing | None:
        """Get a listing by id."""

    def search_by_keyword(self, query: str) -> list[PackageListing]:
        """Substring-match name, description, and tags; best sellers first."""
