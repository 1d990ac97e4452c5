"""EZDispatch package initialization module.

This package composes emails as immutable values and dispatches them over
SMTP. Plain-text emails are sent as a single text part, while emails with an
HTML body, inline images or attachments are assembled as MIME multipart
messages.

Modules:
    core (module): The `Email` value, its builder and the dispatching service.
    sources (module): Re-readable content sources for inline parts and attachments.
    transport (module): The SMTP transport.
    config (module): SMTP settings loaded from environment variables.
    utils (module): Provides validation helpers for files, templates and configs.

Example:
    from ezdispatch import EmailService, SmtpTransport, email_to

    smtp = {"server": "smtp.domain.com", "port": 587}
    sender = {"email": "me@domain.com", "password": "secret"}

    service = EmailService(SmtpTransport(smtp, sender))
    service.send(
        email_to("recipient@domain.com")
        .sender("me@domain.com")
        .subject("Hello!")
        .html("<p>This is a test email.</p>")
        .attach_file("report.pdf")
        .build()
    )
"""

from .config import SmtpSettings
from .core import DEFAULT_SENDER, Email, EmailBuilder, EmailService, email_to
from .errors import EmailSendError
from .sources import BytesSource, ContentSource, FileSource
from .transport import MailTransport, SmtpTransport

__all__ = [
    "DEFAULT_SENDER",
    "BytesSource",
    "ContentSource",
    "Email",
    "EmailBuilder",
    "EmailSendError",
    "EmailService",
    "FileSource",
    "MailTransport",
    "SmtpSettings",
    "SmtpTransport",
    "email_to",
]
