import logging
from typing import Protocol

import requests
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from ..config import Settings


logger = logging.getLogger(__name__)


class SmsDeliveryError(Exception):
    pass


class SmsSender(Protocol):
    def send(self, to: str, body: str) -> bool:
        """Deliver ``body`` to ``to``; True when a live provider accepted it."""
        ...


class TwilioSmsSender:
    def __init__(self, account_sid: str, auth_token: str, from_number: str, client: Client = None):
        self.from_number = from_number
        self.client = client or Client(account_sid, auth_token)

    def send(self, to: str, body: str) -> bool:
        try:
            message = self.client.messages.create(to=to, from_=self.from_number, body=body)
        except TwilioException as e:
            raise SmsDeliveryError(f"SMS provider rejected message: {e}") from e
        except requests.RequestException as e:
            # the SDK's default HTTP client lets transport errors through
            raise SmsDeliveryError(f"SMS provider unreachable: {e}") from e

        logger.debug("Twilio accepted message %s", message.sid)
        return True


class ConsoleSmsSender:
    """Development sender: writes the message to the server log instead of sending it."""

    def send(self, to: str, body: str) -> bool:
        logger.warning("Development mode - SMS to %s: %s", to, body)
        return False


def build_sms_sender(settings: Settings) -> SmsSender:
    if settings.twilio_configured:
        return TwilioSmsSender(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_phone_number,
        )
    logger.warning(
        "Twilio credentials not configured. SMS delivery is disabled; "
        "codes will be written to the server log."
    )
    return ConsoleSmsSender()
