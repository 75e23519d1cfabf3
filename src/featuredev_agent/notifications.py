"""
Out-of-band notifications, shown when the chat is not visible.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from rich.console import Console
from rich.panel import Panel

from featuredev_agent.logging import get_logger

logger = get_logger(__name__)


@dataclass
class NotificationAction:
    """A link offered on a notification."""

    text: str
    handler: Callable[[], None]


class Notifier(Protocol):
    def notify_info(self, title: str, content: str, actions: Optional[List[NotificationAction]] = None) -> None: ...


class ConsoleNotifier:
    """Prints notifications as rich panels."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    def notify_info(self, title: str, content: str, actions: Optional[List[NotificationAction]] = None) -> None:
        body = content
        if actions:
            body += "\n" + "  ".join(f"[link]{a.text}[/link]" for a in actions)
        self.console.print(Panel(body, title=title, border_style="cyan"))
        logger.debug("Notification shown", title=title)


class NullNotifier:
    """Drops notifications."""

    def notify_info(self, title: str, content: str, actions: Optional[List[NotificationAction]] = None) -> None:
        logger.debug("Notification suppressed", title=title)
