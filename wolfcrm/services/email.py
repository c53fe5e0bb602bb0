"""Login code delivery channels.

The channel is picked once, when the client is built: SES when
``EMAIL_DELIVERY=ses`` and the SES client can be built, otherwise the
console sink. A failed SES send is handed to the console sink by the caller
so login keeps working while the mail provider is down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    pass


@dataclass
class EmailMessage:
    to: str
    subject: str
    text_body: str
    html_body: Optional[str] = None


class EmailClient:
    delivery_mode = "none"

    def send(self, message: EmailMessage) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class SesEmailClient(EmailClient):
    delivery_mode = "email"

    def __init__(self, client: Any = None) -> None:
        if client is None:
            try:
                client = _ses_client()
            except BotoCoreError as exc:
                logger.error("SES client setup failed: %s", exc)
                raise EmailDeliveryError("SES is not configured") from exc
        self._client = client

    def send(self, message: EmailMessage) -> None:
        try:
            body: dict[str, dict[str, str]] = {"Text": {"Data": message.text_body}}
            if message.html_body:
                body["Html"] = {"Data": message.html_body}

            self._client.send_email(
                Source=settings.email_from,
                Destination={"ToAddresses": [message.to]},
                Message={
                    "Subject": {"Data": message.subject},
                    "Body": body,
                },
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("SES send_email failed: %s", exc)
            raise EmailDeliveryError("Failed to send email") from exc


class ConsoleEmailClient(EmailClient):
    delivery_mode = "console"

    def send(self, message: EmailMessage) -> None:
        logger.info("Sending email (console) -> %s: %s", message.to, message.subject)
        logger.info("Email body:\n%s", message.text_body)


def _ses_client() -> Any:
    kwargs: dict[str, Any] = {"region_name": settings.aws.region, "config": Config(retries={"max_attempts": 3})}
    if settings.aws.access_key_id and settings.aws.secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws.access_key_id
        kwargs["aws_secret_access_key"] = settings.aws.secret_access_key
    return boto3.client("ses", **kwargs)


def get_email_client() -> EmailClient:
    if settings.email_delivery == "ses":
        try:
            return SesEmailClient()
        except EmailDeliveryError:
            logger.warning("Falling back to ConsoleEmailClient")
    return ConsoleEmailClient()
