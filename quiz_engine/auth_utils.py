"""Authentication utilities: password hashing and credential checks."""

from typing import Optional

from passlib.context import CryptContext
from sqlmodel import Session, select

from quiz_engine.models import User

# bcrypt "2b" ident; passlib's bcrypt backend needs bcrypt<5
PWD_CONTEXT = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",
    bcrypt__rounds=12,
)


def hash_password(plain_password: str) -> str:
    return PWD_CONTEXT.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return PWD_CONTEXT.verify(plain_password, password_hash)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def authenticate_user(session: Session, email: str, password: str) -> Optional[User]:
    """Return the active account matching the credentials, or None.

    Inactive accounts are treated like unknown ones so the caller cannot
    tell which part of the login was wrong.
    """
    user = session.exec(select(User).where(User.email == normalize_email(email))).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user
