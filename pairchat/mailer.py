import asyncio
import logging
from typing import Set

logger = logging.getLogger(__name__)


class EmailSender:
    """Outbound mail; the default implementation only logs."""

    async def send(self, to: str, subject: str, html: str) -> None:
        logger.info(f"Email to {to}: {subject}")


class Mailer:
    def __init__(self, sender: EmailSender, reset_url: str):
        self.sender = sender
        self.reset_url = reset_url
        self._pending: Set[asyncio.Task] = set()

    def send_password_reset(self, to: str, token: str) -> asyncio.Task:
        """Schedule the reset email without waiting for it."""
        link = f"{self.reset_url}?token={token}"
        html = f'<p>You requested a password reset. Click <a href="{link}">here</a> to reset your password.</p>'

        task = asyncio.create_task(self._deliver(to, "Password Reset Request", html))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, to: str, subject: str, html: str):
        try:
            await self.sender.send(to, subject, html)
        except Exception:
            logger.exception(f"Error sending email to {to}")
