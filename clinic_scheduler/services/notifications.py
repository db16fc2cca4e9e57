# clinic_scheduler/services/notifications.py
from __future__ import annotations
import logging
from typing import Optional, Tuple

import httpx

from ..config import settings
from ..errors import NotifyError
from ..schemas import Appointment
from .clock import parse_iso_date

logger = logging.getLogger(__name__)

SUPPORTED_LOCALES = ("en", "pt-BR")

_MONTHS = {
    "en": ["January", "February", "March", "April", "May", "June", "July",
           "August", "September", "October", "November", "December"],
    "pt-BR": ["janeiro", "fevereiro", "março", "abril", "maio", "junho", "julho",
              "agosto", "setembro", "outubro", "novembro", "dezembro"],
}

_SUBJECTS = {
    "en": "Your Appointment Confirmation",
    "pt-BR": "Confirmação da Sua Consulta",
}

_BODIES = {
    "en": (
        "Dear {name},\n\n"
        "Thank you for scheduling an appointment with our clinic.\n\n"
        "Appointment Details:\n"
        "- Date: {date}\n"
        "- Time: {time}\n"
        "{emergency}\n"
        "Please arrive 15 minutes before your scheduled time. If you need to reschedule or cancel "
        "your appointment, please contact us as soon as possible.\n\n"
        "Best regards,\n"
        "Clinic Scheduler Team\n"
    ),
    "pt-BR": (
        "Prezado(a) {name},\n\n"
        "Obrigado por agendar uma consulta em nossa clínica.\n\n"
        "Detalhes da Consulta:\n"
        "- Data: {date}\n"
        "- Horário: {time}\n"
        "{emergency}\n"
        "Por favor, chegue 15 minutos antes do horário agendado. Se precisar remarcar ou cancelar "
        "sua consulta, entre em contato conosco o mais breve possível.\n\n"
        "Atenciosamente,\n"
        "Equipe da Clínica\n"
    ),
}

_EMERGENCY = {
    "en": "- This is marked as an EMERGENCY appointment\n",
    "pt-BR": "- Esta consulta está marcada como EMERGÊNCIA\n",
}


def normalize_locale(locale: Optional[str]) -> str:
    """'pt', 'pt_br', 'pt-BR' → 'pt-BR'; anything unknown → DEFAULT_LOCALE or 'en'."""
    raw = (locale or settings.DEFAULT_LOCALE or "en").strip().replace("_", "-").lower()
    if raw.startswith("pt"):
        return "pt-BR"
    if raw.startswith("en"):
        return "en"
    return "en"


def _format_date(date_iso: str, locale: str) -> str:
    d = parse_iso_date(date_iso)
    if d is None:
        # Unexpected format: show it as stored
        return date_iso
    month = _MONTHS[locale][d.month - 1]
    if locale == "pt-BR":
        return f"{d.day} de {month} de {d.year}"
    return f"{month} {d.day}, {d.year}"


def render_confirmation(appointment: Appointment, locale: str = "en") -> Tuple[str, str]:
    loc = normalize_locale(locale)
    body = _BODIES[loc].format(
        name=appointment.user_name,
        date=_format_date(appointment.date, loc),
        time=appointment.time,
        emergency=_EMERGENCY[loc] if appointment.is_emergency else "",
    )
    return _SUBJECTS[loc], body


class Notifier:
    """Outbound confirmation channel."""

    def notify_booked(self, appointment: Appointment, locale: str = "en") -> None:
        raise NotImplementedError


class MailgunNotifier(Notifier):
    """
    Sends the confirmation e-mail through the Mailgun HTTP API.
    - DRY_RUN=true: nothing is sent, the message is logged
    - missing credentials: MOCK mode, also only logged
    - HTTP/transport errors and timeouts raise NotifyError
    """

    def __init__(self, client: Optional[httpx.Client] = None):
        self.client = client

    def notify_booked(self, appointment: Appointment, locale: str = "en") -> None:
        subject, body = render_confirmation(appointment, locale)
        to = f"{appointment.user_name} <{appointment.user_email}>"
        self._send(to, subject, body)
        logger.info("Confirmation e-mail dispatched: appointment_id=%s to=%s", appointment.id, appointment.user_email)

    # ------------------ internals ------------------

    def _send(self, to: str, subject: str, text: str) -> None:
        if settings.DRY_RUN:
            logger.info("[DRY_RUN EMAIL] to=%s subject=%s body=%s", to, subject, text.replace("\n", " | "))
            return

        if not settings.MAILGUN_API_KEY or not settings.MAILGUN_DOMAIN:
            logger.info("[EMAIL MOCK] to=%s subject=%s", to, subject)
            return

        url = f"{settings.MAILGUN_BASE_URL}/{settings.MAILGUN_DOMAIN}/messages"
        data = {"from": settings.MAILGUN_FROM, "to": to, "subject": subject, "text": text}
        try:
            if self.client is not None:
                resp = self.client.post(url, auth=("api", settings.MAILGUN_API_KEY), data=data,
                                        timeout=settings.NOTIFY_TIMEOUT_SECONDS)
            else:
                resp = httpx.post(url, auth=("api", settings.MAILGUN_API_KEY), data=data,
                                  timeout=settings.NOTIFY_TIMEOUT_SECONDS)
        except httpx.HTTPError as e:
            raise NotifyError(f"Error sending email: {e}") from e

        if resp.status_code >= 400:
            raise NotifyError(f"Failed to send email: {resp.text}")


def notify_booked_safely(notifier: Notifier, appointment: Appointment, locale: str = "en") -> bool:
    """Fire-and-forget wrapper: a failed notification never reaches the booking caller."""
    try:
        notifier.notify_booked(appointment, locale)
        return True
    except NotifyError as e:
        logger.warning("Confirmation e-mail failed for appointment_id=%s: %s", appointment.id, e.message)
    except Exception:
        logger.exception("Unexpected notifier error for appointment_id=%s", appointment.id)
    return False
