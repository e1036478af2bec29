"""
DuckDB storage backend for the marketplace registry.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import duckdb

from .base import PackageListing, PackageRating, SaleRecord


_LISTING_COLUMNS = """
    id, name, description, tags, price, package_path, creator_address,
    token_address, file_count, chunk_count, entity_count, times_sold, created_at
"""


class DuckDBListingStore:
    """DuckDB-backed persistence for package listings, sales, and ratings."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        self.read_only = read_only
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS packages (
                id VARCHAR PRIMARY KEY,
                name VARCHAR NOT NULL,
                description VARCHAR NOT NULL DEFAULT '',
                tags VARCHAR NOT NULL DEFAULT '',
                price DOUBLE NOT NULL DEFAULT 0,
                package_path VARCHAR NOT NULL DEFAULT '',
                creator_address VARCHAR,
                token_address VARCHAR,
                file_count INTEGER NOT NULL DEFAULT 0,
                chunk_count INTEGER NOT NULL DEFAULT 0,
                entity_count INTEGER NOT NULL DEFAULT 0,
                times_sold INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        # Sales and ratings keep history for deleted packages, so no FK to packages.
        self._conn.execute("CREATE SEQUENCE IF NOT EXISTS sales_id_seq START 1;")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS sales (
                id BIGINT PRIMARY KEY DEFAULT nextval('sales_id_seq'),
                package_id VARCHAR NOT NULL,
                buyer_address VARCHAR NOT NULL,
                amount DOUBLE NOT NULL,
                tx_hash VARCHAR NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        self._conn.execute("CREATE SEQUENCE IF NOT EXISTS ratings_id_seq START 1;")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS ratings (
                id BIGINT PRIMARY KEY DEFAULT nextval('ratings_id_seq'),
                package_id VARCHAR NOT NULL,
                rater_address VARCHAR NOT NULL,
                stars INTEGER NOT NULL CHECK (stars BETWEEN 1 AND 5),
                comment VARCHAR NOT NULL DEFAULT '',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

    def list_package(self, listing: PackageListing) -> None:
        # times_sold and created_at survive a relisting.
        self._conn.execute(
            """
            INSERT INTO packages (
                id, name, description, tags, price, package_path, creator_address,
                token_address, file_count, chunk_count, entity_count
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                description = excluded.description,
                tags = excluded.tags,
                price = excluded.price,
                package_path = excluded.package_path,
                creator_address = excluded.creator_address,
                token_address = excluded.token_address,
                file_count = excluded.file_count,
                chunk_count = excluded.chunk_count,
                entity_count = excluded.entity_count
            """,
            [
                listing.id,
                listing.name,
                listing.description,
                listing.tags,
                float(listing.price),
                listing.package_path,
                listing.creator_address,
                listing.token_address,
                listing.file_count,
                listing.chunk_count,
                listing.entity_count,
            ],
        )

    def get_package(self, package_id: str) -> PackageListing | None:
        row = self._conn.execute(
            f"SELECT {_LISTING_COLUMNS} FROM packages WHERE id = ? LIMIT 1",
            [package_id],
        ).fetchone()
        if row is None:
            return None
        return self._row_to_listing(row)

    def get_all_packages(self) -> list[PackageListing]:
        rows = self._conn.execute(
            f"SELECT {_LISTING_COLUMNS} FROM packages ORDER BY created_at DESC, id ASC"
        ).fetchall()
        return [self._row_to_listing(row) for row in rows]

    def search_by_keyword(self, query: str) -> list[PackageListing]:
        rows = self._conn.execute(
            f"""
            SELECT {_LISTING_COLUMNS}
            FROM packages
            WHERE lower(name) LIKE '%' || lower(?) || '%'
               OR lower(description) LIKE '%' || lower(?) || '%'
               OR lower(tags) LIKE '%' || lower(?) || '%'
            ORDER BY times_sold DESC, created_at DESC, id ASC
            """,
            [query, query, query],
        ).fetchall()
        return [self._row_to_listing(row) for row in rows]

    def delete_package(self, package_id: str) -> bool:
        if self.get_package(package_id) is None:
            return False
        self._conn.execute("DELETE FROM packages WHERE id = ?", [package_id])
        return True

    def count_packages(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM packages").fetchone()
        return int(row[0]) if row else 0

    def record_sale(
        self,
        package_id: str,
        buyer_address: str,
        amount: float,
        tx_hash: str,
    ) -> int:
        if self.get_package(package_id) is None:
            raise KeyError(f"Unknown package: {package_id}")
        row = self._conn.execute(
            """
            INSERT INTO sales (package_id, buyer_address, amount, tx_hash)
            VALUES (?, ?, ?, ?)
            RETURNING id
            """,
            [package_id, buyer_address, float(amount), tx_hash],
        ).fetchone()
        self._conn.execute(
            "UPDATE packages SET times_sold = times_sold + 1 WHERE id = ?",
            [package_id],
        )
        if row is None:
            raise RuntimeError(f"Failed to record sale for package: {package_id}")
        return int(row[0])

    def get_sales(self, package_id: str) -> list[SaleRecord]:
        rows = self._conn.execute(
            """
            SELECT id, package_id, buyer_address, amount, tx_hash, created_at
            FROM sales
            WHERE package_id = ?
            ORDER BY id DESC
            """,
            [package_id],
        ).fetchall()
        return [
            SaleRecord(
                id=int(row[0]),
                package_id=str(row[1]),
                buyer_address=str(row[2]),
                amount=float(row[3]),
                tx_hash=str(row[4]),
                created_at=str(row[5]),
            )
            for row in rows
        ]

    def rate_package(
        self,
        package_id: str,
        rater_address: str,
        stars: int,
        comment: str = "",
    ) -> None:
        if not 1 <= stars <= 5:
            raise ValueError(f"Rating must be between 1 and 5 stars, got {stars}.")
        if self.get_package(package_id) is None:
            raise KeyError(f"Unknown package: {package_id}")
        self._conn.execute(
            """
            INSERT INTO ratings (package_id, rater_address, stars, comment)
            VALUES (?, ?, ?, ?)
            """,
            [package_id, rater_address, stars, comment],
        )

    def get_package_rating(self, package_id: str) -> PackageRating | None:
        row = self._conn.execute(
            "SELECT AVG(stars), COUNT(*) FROM ratings WHERE package_id = ?",
            [package_id],
        ).fetchone()
        if row is None or not row[1]:
            return None
        return PackageRating(average=float(row[0]), count=int(row[1]))

    @staticmethod
    def _row_to_listing(row: tuple[Any, ...]) -> PackageListing:
        return PackageListing(
            id=str(row[0]),
            name=str(row[1]),
            description=str(row[2]),
            tags=str(row[3]),
            price=float(row[4]),
            package_path=str(row[5]),
            creator_address=str(row[6]) if row[6] is not None else None,
            token_address=str(row[7]) if row[7] is not None else None,
            file_count=int(row[8]),
            chunk_count=int(row[9]),
            entity_count=int(row[10]),
            times_sold=int(row[11]),
            created_at=str(row[12]) if row[12] is not None else None,
        )
