from sqlalchemy.orm import Session
from sqlalchemy import select
from models.models_user import User, ROLE_ADMIN

def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()

def create_user(db: Session, *, email: str, full_name: str | None, role: str, password_hash: str) -> User:
    user = User(email=email.lower(), full_name=full_name, role=role, password_hash=password_hash)
    db.add(user)
    return user

def list_admin_ids(db: Session) -> list[str]:
    rows = db.execute(select(User.id).where(User.role == ROLE_ADMIN, User.is_active.is_(True))).scalars()
    return list(rows)
