from app.pdv.db.models import Customer, CustomerPurchase


class CustomerRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, customer_id: str):
        return self.db.get(Customer, customer_id)

    def append_purchase(self, purchase: CustomerPurchase) -> CustomerPurchase:
        self.db.add(purchase)
        return purchase
