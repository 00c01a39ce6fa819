"""Best-effort email notifications.

Messages are queued on the request's :class:`fastapi.BackgroundTasks`
and delivered after the response has been sent. Delivery failures are
logged and never reach the caller.
"""

import html
import logging

from fastapi import BackgroundTasks
from fastapi_mail import FastMail, MessageSchema

from .core import get_mail_config, get_settings
from .models import AdoptionStatus, Animal, User

logger = logging.getLogger(__name__)


class Notifier:
    """Queue emails for delivery once the current request completes."""

    def __init__(self, background_tasks: BackgroundTasks):
        self.background_tasks = background_tasks

    def send(self, recipient: str | None, subject: str, body: str) -> None:
        """
        Schedule an email without waiting for it to be delivered.

        Args:
            recipient (str | None): Recipient email address.
            subject (str): Email subject.
            body (str): Plain-text body.
        """
        if not recipient:
            logger.warning("Skipping notification %r: no recipient", subject)
            return
        self.background_tasks.add_task(send_email_task, recipient, subject, body)


def get_notifier(background_tasks: BackgroundTasks) -> Notifier:
    """FastAPI dependency returning a notifier bound to the request."""
    return Notifier(background_tasks)


def render_html(body: str) -> str:
    """Wrap a plain-text body in the branded HTML layout."""
    settings = get_settings()
    content = html.escape(body).replace("\n", "<br>")
    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <div style="background-color: #f97316; color: white; padding: 20px; text-align: center;">
          <h1 style="margin: 0;">{settings.SITE_NAME}</h1>
          <p style="margin: 5px 0 0 0;">Helping strays find homes</p>
        </div>
        <div style="padding: 20px; background-color: #f9f9f9;">
          <div style="background-color: white; padding: 20px; border-radius: 8px;">
            {content}
          </div>
        </div>
      </body>
    </html>
    """


async def send_email_task(recipient: str, subject: str, body: str):
    """
    Send an email asynchronously.

    Args:
        recipient (str): Recipient email address.
        subject (str): Email subject.
        body (str): Plain-text body, rendered to HTML before sending.
    """
    message = MessageSchema(
        subject=subject,
        recipients=[recipient],
        body=render_html(body),
        subtype="html",
    )
    fm = FastMail(get_mail_config())
    try:
        await fm.send_message(message)
    except Exception:
        logger.exception("Failed to send %r to %s", subject, recipient)
        return
    logger.info("Sent %r to %s", subject, recipient)


def _signature() -> str:
    return f"Best regards,\n{get_settings().SITE_NAME} Team"


def listing_created(poster: User) -> tuple[str, str]:
    subject = f"Animal Listing Created - {get_settings().SITE_NAME}"
    body = (
        f"Hi {poster.name},\n\n"
        "Your animal listing has been created successfully! "
        "Thank you for helping a stray find a home.\n\n"
        f"{_signature()}"
    )
    return subject, body


def interest_received(
    poster: User, animal: Animal, interested: User, message: str, contact_info: str
) -> tuple[str, str]:
    subject = "Someone is interested in adopting your rescued animal!"
    body = (
        f"Hi {poster.name},\n\n"
        f"Someone is interested in adopting {animal.display_name}!\n\n"
        f"Interested person: {interested.name}\n"
        f"Contact: {contact_info}\n"
        f"Message: {message}\n\n"
        "Please contact them to arrange the adoption.\n\n"
        f"{_signature()}"
    )
    return subject, body


def adoption_confirmed(adopter: User, animal: Animal) -> tuple[str, str]:
    subject = f"Congratulations! Adoption Confirmed - {get_settings().SITE_NAME}"
    body = (
        f"Hi {adopter.name},\n\n"
        f"Congratulations! Your adoption of {animal.display_name} has been confirmed.\n\n"
        "Thank you for giving a stray animal a loving home!\n\n"
        f"{_signature()}"
    )
    return subject, body


def adoption_requested(
    poster: User, animal: Animal, adopter: User, message: str, contact_info: str
) -> tuple[str, str]:
    subject = f"New Adoption Request - {get_settings().SITE_NAME}"
    body = (
        f"Hi {poster.name},\n\n"
        f"You have a new adoption request for {animal.name or 'your ' + animal.type}!\n\n"
        f"Adopter: {adopter.name}\n"
        f"Contact: {contact_info}\n"
        f"Message: {message}\n\n"
        "Please review and respond to this request.\n\n"
        f"{_signature()}"
    )
    return subject, body


def adoption_status_changed(
    adopter: User, animal: Animal, status: str, notes: str | None = None
) -> tuple[str, str]:
    """Build the adopter email for a request status change."""
    subject = f"Adoption Request Update - {get_settings().SITE_NAME}"
    body = (
        f"Hi {adopter.name},\n\n"
        f"Your adoption request for {animal.display_name} has been {status}.\n\n"
    )
    if status == AdoptionStatus.COMPLETED.value:
        body += "Congratulations! Thank you for giving a stray animal a loving home.\n\n"
    elif status == AdoptionStatus.APPROVED.value:
        body += (
            "Your request has been approved! The poster will contact you soon "
            "to arrange the adoption.\n\n"
        )
    if notes:
        body += f"Notes: {notes}\n\n"
    body += _signature()
    return subject, body
