import re

from sqlalchemy.exc import IntegrityError

from fieldrent.errors import AppError, NotFoundError, UnauthorizedError, ValidationError
from fieldrent.extensions import bcrypt
from fieldrent.models import ROLES, User

EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


def resolve_caller(store, user_id):
    """Identity lookup shared by every service; ``None`` or an unknown id is unauthenticated."""
    if user_id is None:
        raise UnauthorizedError()
    user = store.get(User, user_id)
    if user is None:
        raise UnauthorizedError("Session expired. Please log in again.")
    return user


class AuthService:
    def __init__(self, store):
        self.store = store

    @staticmethod
    def _normalize_email(email):
        return (email or "").strip().lower()

    def register_user(self, email, password, name):
        normalized_email = self._normalize_email(email)
        name = (name or "").strip()
        if not normalized_email or not password or not name:
            raise ValidationError("Name, email, and password are required.")
        if not EMAIL_PATTERN.fullmatch(normalized_email):
            raise ValidationError("Email address is invalid.")
        if len(password) < 8:
            raise ValidationError("Password must be at least 8 characters.")

        password_hash = bcrypt.generate_password_hash(password).decode("utf-8")
        return self.store.run(self._create_user, normalized_email, name, password_hash)

    def _create_user(self, email, name, password_hash):
        if self.store.exists(User, User.email == email):
            raise AppError("Email already registered.", 409)

        user = User(email=email, name=name, role="user", password_hash=password_hash)
        try:
            self.store.insert(user)
            self.store.commit()
        except IntegrityError as exc:
            raise AppError("Email already registered.", 409) from exc
        return user

    def authenticate_user(self, email, password):
        user = self.store.first(User, User.email == self._normalize_email(email))
        if not user:
            raise UnauthorizedError("Invalid credentials.")
        try:
            is_valid = bcrypt.check_password_hash(user.password_hash, password or "")
        except ValueError:
            is_valid = False
        if not is_valid:
            raise UnauthorizedError("Invalid credentials.")
        return user

    def set_role(self, email, role):
        role = (role or "").strip().lower()
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")
        return self.store.run(self._assign_role, self._normalize_email(email), role)

    def _assign_role(self, email, role):
        user = self.store.first(User, User.email == email)
        if not user:
            raise NotFoundError("User not found.")
        self.store.update(user, {"role": role})
        self.store.commit()
        return user
