# auth_service/settings_store.py - per-user SMS / 2FA / alert settings
from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from alert_engine.engine import AlertPolicy
from config import AppConfig

from .errors import InvalidInput, StorageFailure
from .models import User, UserSettings


class SettingsStore:
    """
    Settings surface for one user at a time.

    Rules carried over from the app's preference screen: 2FA and
    notify-at-zero can only be switched on while SMS is on, and switching
    SMS off also switches 2FA off.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _defaults(self, email):
        return UserSettings(
            email=email,
            sms_enabled=False,
            minimum_threshold=AppConfig.DEFAULT_MINIMUM_THRESHOLD,
            notify_at_zero=False,
        )

    def get_policy(self, email: str) -> AlertPolicy:
        try:
            with self._session_factory() as db:
                row = db.get(UserSettings, email) or self._defaults(email)
                return AlertPolicy(
                    sms_enabled=bool(row.sms_enabled),
                    minimum_threshold=int(row.minimum_threshold),
                    notify_at_zero=bool(row.notify_at_zero),
                )
        except SQLAlchemyError as e:
            logger.error(f"Settings read failed for {email}: {e}")
            raise StorageFailure("Could not read settings") from e

    def apply(
        self,
        email: str,
        sms_enabled: Optional[bool] = None,
        two_factor_enabled: Optional[bool] = None,
        notify_at_zero: Optional[bool] = None,
        minimum_threshold: Optional[int] = None,
    ) -> None:
        """
        Apply any subset of the settings at once. Everything is checked
        against the resulting SMS flag before anything is written, and the
        write is a single commit, so a rejected update changes nothing.
        None means "leave as is".
        """
        if minimum_threshold is not None and minimum_threshold < 0:
            raise InvalidInput("Minimum inventory must be zero or more", reason="invalid_threshold")

        sms_on = self.get_policy(email).sms_enabled if sms_enabled is None else sms_enabled
        if two_factor_enabled and not sms_on:
            raise InvalidInput(
                "2FA cannot be enabled as SMS notifications are disabled.",
                reason="sms_disabled",
            )
        if notify_at_zero and not sms_on:
            raise InvalidInput(
                "Inventory zero notifications require SMS to be enabled.",
                reason="sms_disabled",
            )

        values = {
            "sms_enabled": sms_enabled,
            "notify_at_zero": notify_at_zero,
            "minimum_threshold": minimum_threshold,
        }
        if sms_enabled is False:
            two_factor_enabled = False

        try:
            with self._session_factory() as db:
                user = db.get(User, email)
                if user is None:
                    # same as a zero-row update
                    logger.debug(f"Settings update ignored, no account {email}")
                    return
                row = db.get(UserSettings, email)
                if row is None:
                    row = self._defaults(email)
                    db.add(row)
                for key, value in values.items():
                    if value is not None:
                        setattr(row, key, value)
                if two_factor_enabled is not None:
                    user.two_fa_enabled = 1 if two_factor_enabled else 0
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Settings write failed for {email}: {e}")
            raise StorageFailure("Could not write settings") from e

        if sms_enabled is False:
            logger.info(f"2FA disabled for {email} as SMS notifications are turned off")

    def set_sms_enabled(self, email: str, enabled: bool) -> None:
        self.apply(email, sms_enabled=enabled)

    def set_two_factor(self, email: str, enabled: bool) -> None:
        self.apply(email, two_factor_enabled=enabled)

    def set_notify_at_zero(self, email: str, enabled: bool) -> None:
        self.apply(email, notify_at_zero=enabled)

    def set_minimum_threshold(self, email: str, value: int) -> None:
        self.apply(email, minimum_threshold=value)
