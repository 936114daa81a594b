# auth_service/sms_gateway.py - outbound SMS (2FA codes and stock alerts)
from loguru import logger
from twilio.rest import Client as TwilioClient

from config import AppConfig


class SmsGateway:
    """
    Sends a text message and reports only a local outcome.

    With Twilio credentials configured, messages go through the Twilio REST
    API. Without them the message is written to the log instead (development
    mode) and counted as delivered. Any exception from the provider is caught
    and reduced to ``False``; callers never see a crash from here.
    """

    def __init__(self, account_sid=None, auth_token=None, from_number=None):
        self.account_sid = account_sid or AppConfig.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or AppConfig.TWILIO_AUTH_TOKEN
        self.from_number = from_number or AppConfig.TWILIO_PHONE_NUMBER
        self._client = None

    @property
    def configured(self):
        return all([self.account_sid, self.auth_token, self.from_number])

    def _get_client(self):
        if self._client is None:
            self._client = TwilioClient(self.account_sid, self.auth_token)
        return self._client

    def send(self, destination: str, body: str) -> bool:
        if not destination:
            logger.warning("SMS not sent: no destination phone number")
            return False

        if not self.configured:
            logger.warning(f"Twilio not configured. SMS for {destination}: {body}")
            return True

        try:
            message = self._get_client().messages.create(
                to=destination, from_=self.from_number, body=body
            )
            logger.info(f"SMS sent to {destination}, sid: {message.sid}")
            return True
        except Exception as e:
            logger.error(f"Error sending SMS via Twilio to {destination}: {e}")
            return False
