"""
Katalog - produk / cabang 마스터 데이터

재고 코어가 참조하는 최소한의 마스터 데이터만 관리.
"""

import logging

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.errors import NotFoundError, ValidationError
from core.stock.types import Branch, Product
from core.utils.ids import new_id
from core.utils.money import ZERO, to_decimal
from core.utils.timezone import format_ts, now_utc

logger = logging.getLogger(__name__)


class Catalog:
    """produk / cabang 저장소

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def create_product(
        self,
        code: str,
        name: str,
        unit: str,
        density: str | None = None,
        product_id: str | None = None,
    ) -> Product:
        """produk 생성

        Args:
            code: kode_produk (unique)
            name: nama_produk
            unit: satuan (Kg, Ml, Pcs ...)
            density: density_kg_per_liter (Kg ↔ Ml 변환용)
        """
        if not code or not name or not unit:
            raise ValidationError("kode_produk, nama_produk and satuan are required")
        density_value = to_decimal(density, "density_kg_per_liter") if density is not None else None
        if density_value is not None and density_value <= ZERO:
            raise ValidationError(
                "density_kg_per_liter must be greater than 0",
                {"density_kg_per_liter": density_value},
            )

        existing = await self.db.fetchone("SELECT id FROM produk WHERE kode_produk = ?", (code,))
        if existing:
            raise ValidationError(f"kode_produk {code} already exists", {"kode_produk": code})

        product_id = product_id or new_id("prd")
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO produk (id, kode_produk, nama_produk, satuan, density_kg_per_liter, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    product_id,
                    code,
                    name,
                    unit,
                    str(density_value) if density_value is not None else None,
                    format_ts(now_utc()),
                ),
            )
        logger.info(f"Produk created: {product_id} ({code})")
        return await self.get_product(product_id)

    async def get_product(self, product_id: str) -> Product:
        """produk 조회

        Raises:
            NotFoundError: 없는 경우
        """
        row = await self.db.fetchone_dict("SELECT * FROM produk WHERE id = ?", (product_id,))
        if row is None:
            raise NotFoundError("produk", product_id)
        return Product.from_row(row)

    async def list_products(self) -> list[Product]:
        rows = await self.db.fetchall_dict("SELECT * FROM produk ORDER BY kode_produk ASC")
        return [Product.from_row(r) for r in rows]

    async def create_branch(self, name: str, branch_id: str | None = None) -> Branch:
        """cabang 생성"""
        if not name:
            raise ValidationError("nama_cabang is required", {"field": "nama_cabang"})
        branch_id = branch_id or new_id("cbg")
        async with self.db.transaction():
            await self.db.execute(
                "INSERT INTO cabang (id, nama_cabang, created_at) VALUES (?, ?, ?)",
                (branch_id, name, format_ts(now_utc())),
            )
        logger.info(f"Cabang created: {branch_id} ({name})")
        return await self.get_branch(branch_id)

    async def get_branch(self, branch_id: str) -> Branch:
        """cabang 조회

        Raises:
            NotFoundError: 없는 경우
        """
        row = await self.db.fetchone_dict("SELECT * FROM cabang WHERE id = ?", (branch_id,))
        if row is None:
            raise NotFoundError("cabang", branch_id)
        return Branch.from_row(row)

    async def list_branches(self) -> list[Branch]:
        rows = await self.db.fetchall_dict("SELECT * FROM cabang ORDER BY nama_cabang ASC")
        return [Branch.from_row(r) for r in rows]
