from sqlalchemy.orm import Session
from sqlalchemy import select, or_
from app.crud.base import CRUDBase
from app.models.user import User
from app.schemas.user import UserCreate

from app.core.security_password import hash_password

class CRUDUser(CRUDBase[User]):
    def create(self, db: Session, obj_in: UserCreate, extra=None) -> User:
        data = obj_in.model_dump()
        data["hashed_password"] = hash_password(data.pop("password"))
        data["email"] = data["email"].strip().lower()
        if extra: data.update(extra)
        user = User(**data)
        db.add(user); db.commit(); db.refresh(user)
        return user

    def get_by_username(self, db: Session, username: str) -> User | None:
        return db.execute(select(User).where(User.username == username)).scalar_one_or_none()

    def exists(self, db: Session, *, username: str, email: str) -> bool:
        stmt = select(User.id).where(or_(User.username == username, User.email == email.strip().lower()))
        return db.execute(stmt.limit(1)).first() is not None

user_crud = CRUDUser(User)
