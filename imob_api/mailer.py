"""
Outgoing email: Jinja2-rendered templates delivered over SMTP.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from pathlib import Path
from typing import Optional, Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import escape

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

ROLE_NAMES = {
    "admin": "Administrador",
    "manager": "Gerente",
    "broker": "Corretor",
    "broker_admin": "Corretor Administrador",
}

_template_env: Optional[Environment] = None


def get_template_env() -> Environment:
    """Get or create the Jinja2 template environment."""
    global _template_env
    if _template_env is None:
        _template_env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )
    return _template_env


def render_template(template_name: str, **context) -> str:
    return get_template_env().get_template(template_name).render(**context)


def translate_role(role: str) -> str:
    return ROLE_NAMES.get(role, role)


class Mailer(Protocol):
    def send(self, to_email: str, to_name: str, subject: str, html_body: str, text_body: str) -> bool:
        ...


class SmtpMailer:
    """Sends mail through an SMTP relay with STARTTLS."""

    def __init__(
        self,
        host: Optional[str],
        port: int,
        user: Optional[str],
        password: Optional[str],
        from_email: Optional[str] = None,
        from_name: str = "Ecosistema Imob",
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email or user
        self.from_name = from_name

    @property
    def enabled(self) -> bool:
        return bool(self.host and self.user and self.password)

    def send(self, to_email: str, to_name: str, subject: str, html_body: str, text_body: str) -> bool:
        if not self.enabled:
            logger.warning("SMTP is not configured, email to %s not sent: %s", to_email, subject)
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = formataddr((to_name, to_email)) if to_name else to_email
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                server.starttls()
                server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP error sending email to %s: %s", to_email, exc)
            return False

        logger.info("Email sent to %s: %s", to_email, subject)
        return True


@dataclass
class InMemoryMailer:
    """Records messages instead of sending them."""

    sent: list = field(default_factory=list)
    enabled: bool = True

    def send(self, to_email: str, to_name: str, subject: str, html_body: str, text_body: str) -> bool:
        if not self.enabled:
            return False
        self.sent.append(
            {
                "to_email": to_email,
                "to_name": to_name,
                "subject": subject,
                "html_body": html_body,
                "text_body": text_body,
            }
        )
        return True

    def reset(self) -> None:
        self.sent.clear()


def send_invitation_email(
    mailer: Mailer,
    *,
    frontend_url: str,
    from_name: str,
    email: str,
    name: str,
    token: str,
    tenant_name: str,
    inviter_name: str,
    role: str,
    expires_at: datetime,
) -> bool:
    context = {
        "from_name": from_name,
        "invitee_name": name,
        "tenant_name": tenant_name,
        "inviter_name": inviter_name,
        "role_name": translate_role(role),
        "accept_url": f"{frontend_url.rstrip('/')}/auth/accept-invitation?token={token}",
        "expires_at": expires_at.strftime("%d/%m/%Y %H:%M"),
    }
    subject = f"Convite para {tenant_name} - {from_name}"
    return mailer.send(
        email,
        name,
        subject,
        render_template("invitation.html", **context),
        render_template("invitation.txt", **context),
    )


def send_owner_confirmation_email(
    mailer: Mailer,
    *,
    email: str,
    owner_name: str,
    tenant_name: str,
    property_title: str,
    reference: str,
    confirm_url: str,
    expires_at: datetime,
) -> bool:
    text = render_template(
        "owner_confirmation.txt",
        owner_name=owner_name,
        tenant_name=tenant_name,
        property_title=property_title,
        reference=reference,
        confirm_url=confirm_url,
        expires_at=expires_at.strftime("%d/%m/%Y"),
    )
    subject = f"{tenant_name}: confirme as informações do seu imóvel"
    # Plain text only; the html part is the same text wrapped in <pre>.
    html = "<pre>" + escape(text) + "</pre>"
    return mailer.send(email, owner_name, subject, html, text)
