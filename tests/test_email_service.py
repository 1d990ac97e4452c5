from __future__ import annotations

from email import message_from_string, policy
from smtplib import SMTPRecipientsRefused

import pytest

from ezdispatch import BytesSource, EmailSendError, EmailService, email_to


class FakeTransport:
    def __init__(self):
        self.sent = []

    def send(self, message, from_addr, to_addrs):
        self.sent.append((message, from_addr, list(to_addrs)))

    def delivered(self, index=0):
        """The message as a receiving server would parse it."""
        return message_from_string(self.sent[index][0].as_string())


class FailingSource:
    def read(self):
        raise OSError("disk unavailable")


class FailingTransport:
    def send(self, message, from_addr, to_addrs):
        raise SMTPRecipientsRefused({"bad": (550, b"no such user")})


def body_text(part):
    return part.get_payload(decode=True).decode("utf-8")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def service(transport):
    return EmailService(transport)


def test_simple_message_preserves_fields(service, transport):
    service.send(
        email_to("TEST USER <test.user@company.com.au>")
        .sender("JOHN SENDER <john.sender@company.com.au>")
        .reply_to("REPLY TO <reply.to@company.com.au>")
        .subject("Test Email")
        .text("First Line\r\nSecond Line")
        .build()
    )

    assert len(transport.sent) == 1
    message = transport.delivered()
    assert message.get_content_type() == "text/plain"
    assert not message.is_multipart()
    assert message["To"] == "TEST USER <test.user@company.com.au>"
    assert message["From"] == "JOHN SENDER <john.sender@company.com.au>"
    assert message["Reply-To"] == "REPLY TO <reply.to@company.com.au>"
    assert message["Subject"] == "Test Email"
    assert body_text(message) == "First Line\r\nSecond Line"


def test_simple_message_envelope_includes_bcc_but_headers_do_not(service, transport):
    service.send(
        email_to("a@example.com")
        .to("b@example.com")
        .cc("c@example.com")
        .bcc("hidden@example.com")
        .sender("from@example.com")
        .text("hi")
        .build()
    )

    message, from_addr, to_addrs = transport.sent[0]
    assert from_addr == "from@example.com"
    assert to_addrs == ["a@example.com", "b@example.com", "c@example.com", "hidden@example.com"]
    delivered = transport.delivered()
    assert delivered["To"] == "a@example.com, b@example.com"
    assert delivered["Cc"] == "c@example.com"
    assert delivered["Bcc"] is None


def test_simple_message_uses_default_sender_and_keeps_unicode(service, transport):
    service.send(email_to("to@example.com").subject("Status").text("Olá, atualização concluída ✓").build())

    _, from_addr, _ = transport.sent[0]
    assert from_addr == "test@test.com"
    assert transport.delivered()["From"] == "test@test.com"
    assert body_text(transport.delivered()) == "Olá, atualização concluída ✓"


def test_html_message_with_attachment(service, transport):
    config = b"spring:\n  mail:\n    username: user\n    password: pass\n"
    service.send(
        email_to("TEST USER <test.user@company.com.au>")
        .sender("JOHN SENDER <john.sender@company.com.au>")
        .reply_to("REPLY TO <reply.to@company.com.au>")
        .subject("Test Email")
        .html("<b>Message Body</b>")
        .attachment("application.yml", BytesSource(config))
        .build()
    )

    message = transport.delivered()
    assert message["To"] == "TEST USER <test.user@company.com.au>"
    assert message["From"] == "JOHN SENDER <john.sender@company.com.au>"
    assert message["Reply-To"] == "REPLY TO <reply.to@company.com.au>"
    assert message["Subject"] == "Test Email"
    assert message.get_content_type() == "multipart/mixed"

    parts = message.get_payload()
    assert len(parts) == 2

    related, attachment = parts
    assert related.get_content_type() == "multipart/related"
    html = related.get_payload()[0]
    assert html.get_content_type() == "text/html"
    assert body_text(html) == "<b>Message Body</b>"

    assert attachment.get_filename() == "application.yml"
    assert attachment.get_content_disposition() == "attachment"
    assert attachment.get_payload(decode=True) == config
    assert b"password: pass" in attachment.get_payload(decode=True)


def test_each_attachment_recoverable_by_name_in_order(service, transport):
    files = {
        "report.csv": b"name,total\nalice,3\n",
        "archive.bin": bytes(range(256)),
        "photo.png": b"\x89PNG\r\n\x1a\n\x00\x00",
    }
    builder = email_to("to@example.com").html("<p>see attached</p>")
    for name, data in files.items():
        builder.attachment(name, BytesSource(data))

    service.send(builder.build())

    attachments = transport.delivered().get_payload()[1:]
    assert [part.get_filename() for part in attachments] == list(files)
    for part in attachments:
        assert part.get_payload(decode=True) == files[part.get_filename()]


def test_inline_parts_live_in_related_section_with_content_id(service, transport):
    logo = b"\x89PNG\r\n\x1a\nlogo"
    service.send(
        email_to("to@example.com")
        .html('<img src="cid:logo.png">')
        .inline("logo.png", BytesSource(logo))
        .attachment("terms.pdf", BytesSource(b"%PDF-1.4"))
        .build()
    )

    related, attachment = transport.delivered().get_payload()
    html, image = related.get_payload()
    assert html.get_content_type() == "text/html"
    assert image.get_content_type() == "image/png"
    assert image["Content-ID"] == "<logo.png>"
    assert image.get_content_disposition() == "inline"
    assert image.get_payload(decode=True) == logo
    assert attachment.get_filename() == "terms.pdf"


def test_text_and_html_become_alternative_body(service, transport):
    service.send(email_to("to@example.com").text("plain version").html("<p>html version</p>").build())

    related = transport.delivered().get_payload()[0]
    alternative = related.get_payload()[0]
    assert alternative.get_content_type() == "multipart/alternative"
    plain, html = alternative.get_payload()
    assert body_text(plain) == "plain version"
    assert body_text(html) == "<p>html version</p>"


def test_attachment_without_html_uses_plain_text_body(service, transport):
    service.send(email_to("to@example.com").text("see file").attachment("a.txt", BytesSource(b"a")).build())

    related = transport.delivered().get_payload()[0]
    body = related.get_payload()[0]
    assert body.get_content_type() == "text/plain"
    assert body_text(body) == "see file"


def test_failed_attachment_read_raises_send_error_and_sends_nothing(service, transport):
    email = email_to("to@example.com").html("<p>x</p>").attachment("broken.pdf", FailingSource()).build()

    with pytest.raises(EmailSendError, match="Failed to add attachment") as exc_info:
        service.send(email)

    assert isinstance(exc_info.value.__cause__, OSError)
    assert transport.sent == []


def test_failed_inline_read_raises_send_error(service, transport):
    email = email_to("to@example.com").html("<p>x</p>").inline("logo.png", FailingSource()).build()

    with pytest.raises(EmailSendError, match="Failed to add inline attachment"):
        service.send(email)

    assert transport.sent == []


def test_transport_errors_propagate_unwrapped():
    service = EmailService(FailingTransport())

    with pytest.raises(SMTPRecipientsRefused):
        service.send(email_to("bad").text("hi").build())


def test_non_ascii_display_names_keep_addresses_parseable(service, transport):
    service.send(
        email_to("Jörg Müller <jorg@example.com>")
        .cc("plain@example.com")
        .sender("Zoë <zoe@example.com>")
        .reply_to("Équipe Support <support@example.com>")
        .subject("Hallo")
        .text("hi")
        .build()
    )

    parsed = message_from_string(transport.sent[0][0].as_string(), policy=policy.default)
    to = parsed["To"].addresses[0]
    assert (to.display_name, to.addr_spec) == ("Jörg Müller", "jorg@example.com")
    assert parsed["Cc"].addresses[0].addr_spec == "plain@example.com"
    sender = parsed["From"].addresses[0]
    assert (sender.display_name, sender.addr_spec) == ("Zoë", "zoe@example.com")
    reply_to = parsed["Reply-To"].addresses[0]
    assert (reply_to.display_name, reply_to.addr_spec) == ("Équipe Support", "support@example.com")


def test_non_application_types_keep_their_main_type(service, transport):
    video = b"\x00\x00\x00\x18ftypmp42"
    service.send(email_to("to@example.com").html("<p>clip</p>").attachment("clip.mp4", BytesSource(video)).build())

    attachment = transport.delivered().get_payload()[1]
    assert attachment.get_content_type() == "video/mp4"
    assert attachment.get_filename() == "clip.mp4"
    assert attachment.get_payload(decode=True) == video


def test_non_utf8_text_attachment_is_sent_as_octet_stream(service, transport):
    service.send(email_to("to@example.com").html("<p>x</p>").attachment("x.txt", BytesSource(b"\xff\xfe")).build())

    attachment = transport.delivered().get_payload()[1]
    assert attachment.get_content_type() == "application/octet-stream"
    assert attachment.get_filename() == "x.txt"
    assert attachment.get_payload(decode=True) == b"\xff\xfe"
