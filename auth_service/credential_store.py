# auth_service/credential_store.py
from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import AlreadyExists, NotFound, StorageFailure
from .hashing import hash_password, verify_password
from .models import User


class CredentialStore:
    """One row per user: email, password digest, phone, 2FA flag."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def account_exists(self, email: str) -> bool:
        try:
            with self._session_factory() as db:
                return db.get(User, email) is not None
        except SQLAlchemyError as e:
            logger.error(f"Existence check failed for {email}: {e}")
            raise StorageFailure("Could not read user table") from e

    def create_account(self, email: str, password: str, phone: str) -> None:
        """
        Insert a new user row.

        The existence check and the insert are separate statements; if two
        registrations race past the check, the primary key on ``email`` turns
        the loser's insert into ``AlreadyExists``. Hashing happens before any
        write, so a ``HashingFailure`` leaves the table untouched.
        """
        if self.account_exists(email):
            raise AlreadyExists(f"User {email} already exists")

        password_hash = hash_password(password)

        user = User(email=email, password_hash=password_hash, phone=phone, two_fa_enabled=0)
        try:
            with self._session_factory() as db:
                db.add(user)
                db.commit()
        except IntegrityError as e:
            logger.warning(f"Insert lost registration race for {email}")
            raise AlreadyExists(f"User {email} already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert user {email}: {e}")
            raise StorageFailure("Could not write user row") from e
        logger.info(f"Created account {email}")

    def verify_credentials(self, email: str, password: str) -> bool:
        try:
            with self._session_factory() as db:
                user = db.get(User, email)
                stored = user.password_hash if user else None
        except SQLAlchemyError as e:
            logger.error(f"Credential lookup failed for {email}: {e}")
            raise StorageFailure("Could not read user table") from e
        if stored is None:
            return False
        return verify_password(password, stored)

    def get_phone_number(self, email: str) -> str:
        try:
            with self._session_factory() as db:
                user = db.get(User, email)
                if user is None:
                    raise NotFound(f"No account for {email}")
                return user.phone
        except SQLAlchemyError as e:
            logger.error(f"Phone lookup failed for {email}: {e}")
            raise StorageFailure("Could not read user table") from e

    def set_two_factor_enabled(self, email: str, enabled: bool) -> None:
        try:
            with self._session_factory() as db:
                updated = (
                    db.query(User)
                    .filter(User.email == email)
                    .update({User.two_fa_enabled: 1 if enabled else 0})
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"2FA update failed for {email}: {e}")
            raise StorageFailure("Could not update user row") from e
        logger.debug(f"Number of rows updated: {updated}")

    def is_two_factor_enabled(self, email: str) -> bool:
        try:
            with self._session_factory() as db:
                user = db.get(User, email)
                return bool(user is not None and user.two_fa_enabled == 1)
        except SQLAlchemyError as e:
            logger.warning(f"Could not read 2FA flag for {email}: {e}")
            return False
