import logging
from typing import Optional

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType

from ..config import settings, Settings
from ..utils.errors import ExternalServiceError
from ..utils.logging_config import mask_email

logger = logging.getLogger(__name__)


def build_connection_config(config: Settings) -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=config.mail_username,
        MAIL_PASSWORD=config.mail_password,
        MAIL_FROM=config.mail_from,
        MAIL_PORT=config.mail_port,
        MAIL_SERVER=config.mail_server,
        MAIL_FROM_NAME=config.mail_from_name,
        MAIL_STARTTLS=config.mail_starttls,
        MAIL_SSL_TLS=config.mail_ssl_tls,
        USE_CREDENTIALS=bool(config.mail_username),
        VALIDATE_CERTS=True,
        SUPPRESS_SEND=1 if config.mail_suppress_send else 0,
    )


class MailTransport:
    """Outbound email over SMTP. Any failure surfaces as ExternalServiceError."""
    
    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings
        self._client: Optional[FastMail] = None
    
    @property
    def client(self) -> FastMail:
        if self._client is None:
            self._client = FastMail(build_connection_config(self.config))
        return self._client
    
    async def send(self, to: str, subject: str, body: str) -> None:
        try:
            message = MessageSchema(
                subject=subject,
                recipients=[to],
                body=body,
                subtype=MessageType.html,
            )
            await self.client.send_message(message)
        except Exception as e:
            logger.error(f"Mail transport failed for {mask_email(to)}: {type(e).__name__}")
            raise ExternalServiceError("Email delivery failed") from e
