import logging
from smtplib import SMTP, SMTP_SSL
from email.message import Message
from typing import Protocol, Sequence, Union

from .utils import validate_protocol_config, validate_sender

logger = logging.getLogger(__name__)


class MailTransport(Protocol):
    """Anything able to deliver an assembled message to an envelope."""

    def send(self, message: Message, from_addr: str, to_addrs: Sequence[str]) -> None: ...


class SmtpTransport:
    """Delivers messages over SMTP, one connection per send.

    Connections are never shared between calls, so a single instance can be
    used from several threads at once.

    Example:
        smtp = {"server": "smtp.domain.com", "port": 587}
        sender = {"email": "me@domain.com", "password": "secret"}
        transport = SmtpTransport(smtp, sender)
    """

    def __init__(self, smtp: dict, sender: dict | None = None, timeout: float = 30):
        """Initializes the transport with server settings and optional credentials.

        Args:
            smtp (dict): SMTP configuration with keys:
                - `server` (str): SMTP server hostname or IP.
                - `port` (int): Port used for the connection.
                - `ssl` (bool, optional): Use implicit TLS. Defaults to `port == 465`.
                - `starttls` (bool, optional): Upgrade with STARTTLS. Defaults to `port == 587`.
            sender (dict, optional): Login credentials with keys:
                - `email` (str): Account used to authenticate.
                - `password` (str): Account password.
            timeout (float): Socket timeout in seconds.

        Raises:
            ValueError: If `smtp` or `sender` is malformed.
        """
        validate_protocol_config(smtp)
        if sender is not None:
            validate_sender(sender)

        self.smtp_server = smtp["server"]
        self.smtp_port = smtp["port"]

        ssl = smtp.get("ssl")
        starttls = smtp.get("starttls")
        self.use_ssl = self.smtp_port == 465 if ssl is None else ssl
        self.use_starttls = (self.smtp_port == 587 and not self.use_ssl) if starttls is None else starttls

        self.username = sender["email"] if sender else None
        self.password = sender["password"] if sender else None
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SmtpTransport":
        """Builds a transport from an `SmtpSettings` instance."""
        return cls(settings.to_smtp_dict(), settings.to_sender_dict(), timeout=settings.timeout)

    def _connect(self) -> Union[SMTP, SMTP_SSL]:
        conn = SMTP_SSL if self.use_ssl else SMTP
        smtp = conn(self.smtp_server, self.smtp_port, timeout=self.timeout)

        try:
            if self.use_starttls:
                smtp.starttls()
            if self.username is not None:
                smtp.login(self.username, self.password)
        except Exception:
            smtp.close()
            raise
        return smtp

    def send(self, message: Message, from_addr: str, to_addrs: Sequence[str]) -> None:
        logger.info(
            "Connecting to %s:%s (ssl=%s, starttls=%s)",
            self.smtp_server, self.smtp_port, self.use_ssl, self.use_starttls,
        )
        with self._connect() as smtp:
            smtp.sendmail(from_addr, list(to_addrs), message.as_string())
        logger.info("Delivered message to %d recipient(s)", len(to_addrs))
