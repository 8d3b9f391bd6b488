from sqlalchemy import select, update

from app.pdv.db.models import Product, StockMovement, utcnow


class ProductRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, product_id: str):
        return self.db.get(Product, product_id)

    def get_many(self, product_ids) -> dict[str, Product]:
        ids = list(product_ids)
        if not ids:
            return {}
        rows = self.db.execute(select(Product).where(Product.id.in_(ids))).scalars().all()
        return {str(row.id): row for row in rows}

    def decrement_stock(self, product_id: str, qty: int) -> int | None:
        """Compare-and-decrement in a single statement.

        Returns the new stock level, or ``None`` when the product does not
        hold ``qty`` units. Never commits.
        """
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= qty)
            .values(stock=Product.stock - qty, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        return self.db.execute(select(Product.stock).where(Product.id == product_id)).scalar_one()

    def add_movement(self, movement: StockMovement) -> StockMovement:
        self.db.add(movement)
        return movement

    def current_stock(self, product_id: str) -> int | None:
        return self.db.execute(select(Product.stock).where(Product.id == product_id)).scalar_one_or_none()
