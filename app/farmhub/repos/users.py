from datetime import datetime

from sqlalchemy import select

from app.farmhub.db.models import User


class UserRepository:
    def __init__(self, db):
        self.db = db

    def find_user_by_id(self, user_id: str):
        """Live (not soft-deleted) user, or None."""
        stmt = select(User).where(User.id == user_id, User.is_deleted.is_(False))
        return self.db.execute(stmt).scalars().first()

    def list_by_username_or_email(self, identifier: str):
        stmt = select(User).where((User.username == identifier) | (User.email == identifier))
        return self.db.execute(stmt).scalars().all()

    def update_last_login(self, user: User) -> User:
        user.last_login_at = datetime.utcnow()
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def username_or_email_taken(self, username: str, email: str) -> bool:
        stmt = select(User.id).where((User.username == username) | (User.email == email)).limit(1)
        return self.db.execute(stmt).first() is not None

    def create(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
