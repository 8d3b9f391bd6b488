from sqlalchemy import or_, select

from app.pdv.db.models import User


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, user_id: str):
        return self.db.get(User, user_id)

    def get_by_username_or_email(self, identifier: str):
        """Usernames and emails share one login field; either may match."""
        identifier = identifier.strip()
        stmt = select(User).where(or_(User.username == identifier, User.email == identifier.lower()))
        return self.db.execute(stmt).scalars().first()
