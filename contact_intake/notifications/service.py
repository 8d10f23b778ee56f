"""Email notifications for new contact submissions.

Each submission produces a confirmation to the submitter and an alert to
the operator inbox. Delivery is fire-and-forget: failures are logged and
never reach the submitter. The SMTP password may be stored encrypted with
Fernet (AES-128-CBC) derived from SECRET_KEY.
"""

import base64
import hashlib
import logging
import smtplib
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from html import escape

from cryptography.fernet import Fernet
from sqlalchemy.orm import Session

from ..config import Settings, settings
from ..contacts.exceptions import ContactError
from ..contacts.schemas import ContactRecord
from ..contacts.service import mark_email_sent
from ..database.base import Database
from .models import NotificationLog

logger = logging.getLogger(__name__)

CONFIRMATION = "confirmation"
ADMIN_ALERT = "admin_alert"


# ── Credential encryption ─────────────────────────────────────────────


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from the app SECRET_KEY using SHA-256."""
    digest = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def encrypt_value(plaintext: str, secret: str | None = None) -> str:
    f = Fernet(_derive_fernet_key(secret or settings.secret_key))
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str, secret: str | None = None) -> str:
    f = Fernet(_derive_fernet_key(secret or settings.secret_key))
    return f.decrypt(ciphertext.encode()).decode()


# ── Email building ─────────────────────────────────────────────────────


def _base_message(cfg: Settings, to: str, subject: str, reply_to: str | None = None) -> MIMEMultipart:
    """Multipart message with the headers spam filters look for."""
    sender = cfg.sender_address
    msg = MIMEMultipart("alternative")
    msg["From"] = formataddr((cfg.sender_name, sender))
    msg["To"] = to
    msg["Reply-To"] = reply_to or sender
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=sender.split("@")[-1] if "@" in sender else "local")
    msg["X-Mailer"] = "ContactIntake/1.0"
    msg["Subject"] = subject
    return msg


def _wrap_html(title: str, body: str) -> str:
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{escape(title)}</title>
</head>
<body style="margin:0; padding:0; background-color:#f4f4f5; font-family:Arial,Helvetica,sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="background-color:#f4f4f5;">
    <tr><td align="center" style="padding:24px 16px;">
      <table role="presentation" width="600" cellpadding="0" cellspacing="0"
             style="background-color:#ffffff; border-radius:8px;">
        <tr><td style="padding:32px; color:#374151; font-size:15px; line-height:1.6;">
{body}
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def build_confirmation_email(record: ContactRecord, cfg: Settings = settings) -> MIMEMultipart:
    """Thank-you email to the person who submitted the form."""
    msg = _base_message(cfg, record.email, f"Thank you for contacting {cfg.sender_name}")
    submitted = record.created_at.strftime("%Y-%m-%d %H:%M UTC")

    text_body = (
        f"Dear {record.name},\n\n"
        f"We have received your message and will get back to you within 24 hours.\n\n"
        f"  Reference: {record.ticket_id}\n"
        f"  Subject:   {record.subject}\n"
        f"  Submitted: {submitted}\n\n"
        f"{record.message}\n\n"
        f"--\n"
        f"{cfg.sender_name}\n"
    )
    phone_row = f"<p><strong>Phone:</strong> {escape(record.phone)}</p>" if record.phone else ""
    html_body = _wrap_html(
        "Thank you for contacting us",
        f"""\
          <h2 style="margin:0 0 16px;">Thank you for contacting us!</h2>
          <p>Dear <strong>{escape(record.name)}</strong>,</p>
          <p>We have received your message and will get back to you within 24 hours.</p>
          <p><strong>Reference:</strong> {record.ticket_id}</p>
          <p><strong>Subject:</strong> {escape(record.subject)}</p>
          <p style="white-space:pre-wrap; border-left:4px solid #1e40af; padding-left:12px;">{escape(record.message)}</p>
          {phone_row}
          <p><strong>Submitted:</strong> {submitted}</p>""",
    )
    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg


def build_admin_alert_email(record: ContactRecord, cfg: Settings = settings) -> MIMEMultipart:
    """Alert to the operator inbox; replies go straight to the submitter."""
    msg = _base_message(
        cfg,
        cfg.notification_email,
        f"[{record.priority.value.upper()}] New contact form submission - {record.subject}",
        reply_to=record.email,
    )
    text_body = (
        f"New contact form submission ({record.ticket_id})\n"
        f"{'=' * 48}\n\n"
        f"  Name:     {record.name}\n"
        f"  Email:    {record.email}\n"
        f"  Phone:    {record.phone or '-'}\n"
        f"  Subject:  {record.subject}\n"
        f"  Priority: {record.priority.value}\n"
        f"  Source:   {record.source.value}\n"
        f"  IP:       {record.ip_address or 'Unknown'}\n\n"
        f"{record.message}\n"
    )
    html_body = _wrap_html(
        "New contact form submission",
        f"""\
          <h2 style="margin:0 0 16px; color:#d9534f;">New contact form submission</h2>
          <p><strong>Name:</strong> {escape(record.name)}</p>
          <p><strong>Email:</strong> <a href="mailto:{escape(record.email)}">{escape(record.email)}</a></p>
          <p><strong>Phone:</strong> {escape(record.phone or '-')}</p>
          <p><strong>Subject:</strong> {escape(record.subject)}</p>
          <p><strong>Priority:</strong> {record.priority.value}</p>
          <p><strong>IP Address:</strong> {escape(record.ip_address or 'Unknown')}</p>
          <p style="white-space:pre-wrap; background-color:#fff3cd; padding:16px;">{escape(record.message)}</p>""",
    )
    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg


# ── Email sending ──────────────────────────────────────────────────────


def smtp_configured(cfg: Settings = settings) -> bool:
    return bool(cfg.smtp_user and cfg.smtp_password)


def _send_email(msg: MIMEMultipart, cfg: Settings = settings) -> bool:
    """Send an email via SMTP with TLS. Returns True on success."""
    if not smtp_configured(cfg):
        logger.debug("SMTP not configured, skipping email send")
        return False

    try:
        # Fernet tokens start with 'gAAAAA'
        password = cfg.smtp_password
        if password.startswith("gAAAAA"):
            password = decrypt_value(password, cfg.secret_key)

        with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.smtp_timeout) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(cfg.smtp_user, password)
            server.send_message(msg)
        return True
    except Exception:
        logger.exception("Failed to send email to %s", msg["To"])
        return False


def _already_notified(db: Session, contact_id: uuid.UUID, notification_type: str) -> bool:
    """Check if we already sent this notification type for this contact."""
    return (
        db.query(NotificationLog)
        .filter(
            NotificationLog.contact_id == contact_id,
            NotificationLog.notification_type == notification_type,
        )
        .first()
        is not None
    )


# ── Notifier ───────────────────────────────────────────────────────────


class ContactNotifier:
    """Sends the submission emails and records delivery on the contact.

    Runs outside the request, so it opens its own session on the store.
    """

    def __init__(self, database: Database, cfg: Settings = settings):
        self.database = database
        self.settings = cfg

    def _outbox(self, record: ContactRecord) -> list[tuple[str, str, MIMEMultipart]]:
        outbox = [(CONFIRMATION, record.email, build_confirmation_email(record, self.settings))]
        if self.settings.notification_email:
            outbox.append((ADMIN_ALERT, self.settings.notification_email, build_admin_alert_email(record, self.settings)))
        return outbox

    def send(self, db: Session, record: ContactRecord) -> int:
        """Send pending emails for one contact. Returns how many were sent now."""
        sent_count = 0
        all_delivered = True
        for notification_type, recipient, msg in self._outbox(record):
            if _already_notified(db, record.id, notification_type):
                continue
            if not _send_email(msg, self.settings):
                all_delivered = False
                continue
            db.add(
                NotificationLog(
                    contact_id=record.id,
                    notification_type=notification_type,
                    recipient=recipient,
                    subject=msg["Subject"],
                    detail=f"{record.ticket_id} priority={record.priority.value}",
                )
            )
            sent_count += 1

        if all_delivered:
            mark_email_sent(db, record.id)
        db.flush()
        return sent_count

    def notify(self, record: ContactRecord) -> None:
        if not smtp_configured(self.settings):
            logger.debug("SMTP not configured, contact %s not notified", record.id)
            return
        try:
            with self.database.session() as db:
                sent = self.send(db, record)
                db.commit()
            logger.info("Sent %d notification(s) for contact %s", sent, record.id)
        except ContactError:
            logger.exception("Could not record notification for contact %s", record.id)
