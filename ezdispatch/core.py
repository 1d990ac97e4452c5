import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.mime.application import MIMEApplication
from email.mime.image import MIMEImage
from email.mime.audio import MIMEAudio
from email.mime.base import MIMEBase
from email.message import Message
from email.utils import formataddr, parseaddr
from email import encoders
from mimetypes import guess_type
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple
from jinja2 import Template # type: ignore

from .errors import EmailSendError
from .sources import ContentSource, FileSource
from .transport import MailTransport
from .utils import validate_path, validate_image, validate_template

logger = logging.getLogger(__name__)

DEFAULT_SENDER = "test@test.com"


def _frozen_parts(parts: Optional[Mapping[str, ContentSource]]) -> Mapping[str, ContentSource]:
    return MappingProxyType(dict(parts or {}))


def _addresses(value) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _format_address(address: str) -> str:
    """Encodes only the display name, leaving the address itself readable."""
    name, addr = parseaddr(address)
    if not addr:
        return address
    return formataddr((name, addr), charset="utf-8")


@dataclass(frozen=True)
class Email:
    """An immutable, fully composed email ready for dispatch.

    Instances are normally created through `EmailBuilder` (or `email_to`).
    Recipient sequences are stored as tuples and content parts as read-only
    mappings that keep insertion order.
    """

    to: Tuple[str, ...] = ()
    cc: Tuple[str, ...] = ()
    bcc: Tuple[str, ...] = ()
    sender: str = DEFAULT_SENDER
    reply_to: Optional[str] = None
    subject: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    inline_parts: Mapping[str, ContentSource] = field(default_factory=dict, hash=False)
    attachment_parts: Mapping[str, ContentSource] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "to", _addresses(self.to))
        object.__setattr__(self, "cc", _addresses(self.cc))
        object.__setattr__(self, "bcc", _addresses(self.bcc))
        object.__setattr__(self, "inline_parts", _frozen_parts(self.inline_parts))
        object.__setattr__(self, "attachment_parts", _frozen_parts(self.attachment_parts))

    def is_simple_message(self) -> bool:
        """True when the email is plain text only, with no HTML and no content parts."""
        return self.html is None and not self.inline_parts and not self.attachment_parts

    def recipients(self) -> list[str]:
        """Envelope recipients: `to`, then `cc`, then `bcc`."""
        return [*self.to, *self.cc, *self.bcc]

    def __repr__(self) -> str:
        return (
            f"<Email to={list(self.to)!r} subject={self.subject!r} "
            f"inline={len(self.inline_parts)} attachments={len(self.attachment_parts)}>"
        )


class EmailBuilder:
    """Accumulates the pieces of an `Email`.

    Recipient methods append one address per call, scalar setters overwrite,
    and content registrations insert into an ordered mapping. Every method
    returns the builder so calls can be chained.

    Example:
        email = (
            email_to("user@domain.com")
            .sender("me@domain.com")
            .subject("Monthly report")
            .html("<p>Report attached.</p>")
            .attach_file("reports/monthly_report.pdf")
            .build()
        )
    """

    def __init__(self):
        self._to = []
        self._cc = []
        self._bcc = []
        self._sender = DEFAULT_SENDER
        self._reply_to = None
        self._subject = None
        self._text = None
        self._html = None
        self._inline_parts = {}
        self._attachment_parts = {}

    def to(self, address: str) -> "EmailBuilder":
        self._to.append(address)
        return self

    def cc(self, address: str) -> "EmailBuilder":
        self._cc.append(address)
        return self

    def bcc(self, address: str) -> "EmailBuilder":
        self._bcc.append(address)
        return self

    def sender(self, address: str) -> "EmailBuilder":
        self._sender = address
        return self

    def reply_to(self, address: str) -> "EmailBuilder":
        self._reply_to = address
        return self

    def subject(self, subject: str) -> "EmailBuilder":
        self._subject = subject
        return self

    def text(self, text: str) -> "EmailBuilder":
        self._text = text
        return self

    def html(self, html: str) -> "EmailBuilder":
        self._html = html
        return self

    def template(self, file: str, **variables) -> "EmailBuilder":
        """Renders a Jinja2 HTML template file and uses it as the HTML body.

        Args:
            file (str): Path to the HTML template file.
            **variables: Key-value pairs for Jinja2 placeholders.

        Raises:
            ValueError: If the file is not a valid HTML template.
            FileNotFoundError: If the file does not exist.

        Example:
            template("templates/welcome.html", name="John", version="1.0.0")
        """
        validate_template(file)

        with open(file, "r", encoding="utf-8") as f:
            return self.html(Template(f.read()).render(**variables))

    def inline(self, name: str, source: ContentSource) -> "EmailBuilder":
        """Registers inline content, referenced from HTML as `cid:<name>`."""
        self._inline_parts[name] = source
        return self

    def attachment(self, name: str, source: ContentSource) -> "EmailBuilder":
        """Registers a downloadable attachment under the file name `name`."""
        self._attachment_parts[name] = source
        return self

    def inline_file(self, image_path: str, name: Optional[str] = None) -> "EmailBuilder":
        """Registers an image file as inline content.

        Args:
            image_path (str): Path to the image file.
            name (str, optional): Content-ID used in the HTML. Defaults to the file name.

        Raises:
            ValueError: If the path is not an image.
            FileNotFoundError: If the image does not exist.
        """
        validate_image(image_path)
        source = FileSource(image_path)
        return self.inline(name or source.filename, source)

    def attach_file(self, attachment_path: str, name: Optional[str] = None) -> "EmailBuilder":
        """Registers a file on disk as an attachment.

        Args:
            attachment_path (str): Path to the file to be attached.
            name (str, optional): Attachment file name. Defaults to the file name.

        Raises:
            ValueError: If the path is invalid.
            FileNotFoundError: If the file does not exist.
        """
        validate_path(attachment_path)
        source = FileSource(attachment_path)
        return self.attachment(name or source.filename, source)

    def build(self) -> Email:
        return Email(
            to=tuple(self._to),
            cc=tuple(self._cc),
            bcc=tuple(self._bcc),
            sender=self._sender,
            reply_to=self._reply_to,
            subject=self._subject,
            text=self._text,
            html=self._html,
            inline_parts=self._inline_parts,
            attachment_parts=self._attachment_parts,
        )


def email_to(address: str) -> EmailBuilder:
    """Starts a builder with a first `to` recipient."""
    return EmailBuilder().to(address)


def _mime_part(name: str, data: bytes) -> MIMEBase:
    mime_type, _ = guess_type(name)
    main_type, sub_type = mime_type.split("/", 1) if mime_type else ("application", "octet-stream")

    if main_type == "text":
        try:
            return MIMEText(data.decode("utf-8"), _subtype=sub_type, _charset="utf-8")
        except UnicodeDecodeError:
            return MIMEApplication(data, _subtype="octet-stream")
    if main_type == "image":
        return MIMEImage(data, _subtype=sub_type)
    if main_type == "audio":
        return MIMEAudio(data, _subtype=sub_type)
    if main_type == "application":
        return MIMEApplication(data, _subtype=sub_type)

    part = MIMEBase(main_type, sub_type)
    part.set_payload(data)
    encoders.encode_base64(part)
    return part


class EmailService:
    """Dispatches `Email` values through a mail transport.

    Plain-text emails go out as a single `text/plain` message. Anything with
    an HTML body or content parts is assembled as `multipart/mixed`, holding a
    `multipart/related` body (HTML plus inline parts) followed by attachments.

    Example:
        service = EmailService(SmtpTransport({"server": "smtp.domain.com", "port": 587}))
        service.send(email_to("user@domain.com").subject("Hi").text("Hello!").build())
    """

    def __init__(self, transport: MailTransport):
        self.transport = transport

    def send(self, email: Email) -> None:
        """Builds the message for `email` and hands it to the transport once.

        Raises:
            EmailSendError: If an inline part or attachment cannot be added.
                Nothing is sent in that case.

        Transport errors (`smtplib.SMTPException`, `OSError`) propagate unchanged.
        """
        if email.is_simple_message():
            message = self._build_simple_message(email)
            kind = "simple"
        else:
            message = self._build_mime_message(email)
            kind = "multipart"

        recipients = email.recipients()
        logger.info("Sending %s message %r to %d recipient(s)", kind, email.subject, len(recipients))
        self.transport.send(message, email.sender, recipients)

    def _set_headers(self, message: Message, email: Email) -> None:
        message["From"] = _format_address(email.sender)
        if email.to:
            message["To"] = ", ".join(map(_format_address, email.to))
        if email.cc:
            message["Cc"] = ", ".join(map(_format_address, email.cc))
        if email.reply_to:
            message["Reply-To"] = _format_address(email.reply_to)
        message["Subject"] = email.subject or ""

    def _build_simple_message(self, email: Email) -> Message:
        message = MIMEText(email.text or "", "plain", "utf-8")
        self._set_headers(message, email)
        return message

    def _build_body(self, email: Email) -> MIMEBase:
        if email.html is None:
            return MIMEText(email.text or "", "plain", "utf-8")
        if email.text is None:
            return MIMEText(email.html, "html", "utf-8")

        alt = MIMEMultipart("alternative")
        alt.attach(MIMEText(email.text, "plain", "utf-8"))
        alt.attach(MIMEText(email.html, "html", "utf-8"))
        return alt

    def _build_mime_message(self, email: Email) -> Message:
        message = MIMEMultipart("mixed")
        self._set_headers(message, email)

        related = MIMEMultipart("related")
        related.attach(self._build_body(email))

        for name, source in email.inline_parts.items():
            try:
                part = _mime_part(name, source.read())
            except Exception as e:
                logger.warning("Could not add inline part %r: %s", name, e)
                raise EmailSendError(f"Failed to add inline attachment: {name}") from e
            part.add_header("Content-ID", f"<{name}>")
            part.add_header("Content-Disposition", "inline", filename=name)
            related.attach(part)

        message.attach(related)

        for name, source in email.attachment_parts.items():
            try:
                part = _mime_part(name, source.read())
            except Exception as e:
                logger.warning("Could not add attachment %r: %s", name, e)
                raise EmailSendError(f"Failed to add attachment: {name}") from e
            part.add_header("Content-Disposition", "attachment", filename=name)
            message.attach(part)

        return message
