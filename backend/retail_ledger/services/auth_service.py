# Overview: Password hashing, user creation and credential checks.

"""
Authentication Service

WHY: Every ledger write is attributed to an actor. Users log in with email
and password; the resulting session (see session_service.py) yields the
Actor for each request.

MULTI-TENANT: A user's role decides which tenant ids it must carry:
- ADMIN: none
- OWNER: business_id
- STORE_EXECUTIVE / SALES_REP: outlet_id (business_id follows the outlet)

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters with upper, lower, digit and special character
- Inactive users and inactive businesses cannot authenticate
"""

from __future__ import annotations

import re

import bcrypt

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Business, Outlet, User, UserRole
from ..time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12) -> str:
    """Validate strength, then hash with bcrypt. Stored as a str."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except (ValueError, TypeError):
        return False


def create_user(
    email: str,
    password: str,
    role: str,
    *,
    full_name: str | None = None,
    business_id: int | None = None,
    outlet_id: int | None = None,
    rounds: int = 12,
) -> User:
    """
    Create a user with the tenant ids its role requires.

    Raises:
        ValidationError: unknown role, missing tenant id, weak password
        NotFoundError: business or outlet does not exist
        ConflictError: email already registered
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")

    role = (role or "").strip().upper()
    if role not in UserRole.ALL:
        raise ValidationError(f"Invalid role: {role}", details={"allowed": list(UserRole.ALL)})

    if outlet_id is not None:
        outlet = db.session.get(Outlet, outlet_id)
        if outlet is None:
            raise NotFoundError("Outlet not found", details={"outlet_id": outlet_id})
        if business_id is not None and outlet.business_id != business_id:
            raise ValidationError("Outlet does not belong to this business")
        business_id = outlet.business_id

    if role in (UserRole.STORE_EXECUTIVE, UserRole.SALES_REP) and outlet_id is None:
        raise ValidationError(f"{role} users must be assigned to an outlet")
    if role == UserRole.OWNER and business_id is None:
        raise ValidationError("OWNER users must be linked to a business")

    if business_id is not None and db.session.get(Business, business_id) is None:
        raise NotFoundError("Business not found", details={"business_id": business_id})

    if db.session.query(User).filter(User.email == email).first():
        raise ConflictError("Email already exists")

    user = User(
        email=email,
        full_name=full_name,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        business_id=business_id,
        outlet_id=outlet_id,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user for these credentials, or None.

    Updates last_login_at on success.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()
    if not user:
        return None

    # MULTI-TENANT: users of a deactivated business cannot log in
    if user.business_id is not None:
        business = db.session.get(Business, user.business_id)
        if not business or not business.is_active:
            return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
