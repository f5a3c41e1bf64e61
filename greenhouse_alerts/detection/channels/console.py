"""
Console notification channel.

Writes new alert events to the log (structured) or to a terminal stream as
one coloured line per alert (simple).

Example:
    >>> console = ConsoleChannel(format=OutputFormat.SIMPLE)
    >>> await console.dispatch(event)
    [CRITICAL] gh-1/ESP32_001 WATER_LEVEL_LOW: Water level critical: 4cm
"""

import sys
from enum import Enum
from typing import Dict, Optional, TextIO

import structlog

from greenhouse_alerts.models.alerts import AlertEvent, AlertSeverity

logger = structlog.get_logger(__name__)


class OutputFormat(str, Enum):
    """Console output formats."""

    STRUCTURED = "structured"
    SIMPLE = "simple"


class AnsiColors:
    """ANSI escape sequences used by the simple format."""

    RESET = "\033[0m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    GREY = "\033[90m"
    BOLD = "\033[1m"


SEVERITY_COLORS: Dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: AnsiColors.BOLD + AnsiColors.RED,
    AlertSeverity.HIGH: AnsiColors.RED,
    AlertSeverity.MEDIUM: AnsiColors.YELLOW,
    AlertSeverity.LOW: AnsiColors.BLUE,
}


class ConsoleChannel:
    """
    Alert channel that writes to the log or a terminal stream.

    Attributes:
        format: Output format.
        use_colors: Whether the simple format adds ANSI colours.
        stream: Output stream for the simple format.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.STRUCTURED,
        use_colors: bool = True,
        stream: Optional[TextIO] = None,
    ) -> None:
        self.format = format
        self.use_colors = use_colors
        self.stream = stream or sys.stdout

    async def dispatch(self, event: AlertEvent) -> None:
        """Write one alert event."""
        alert = event.alert

        if self.format == OutputFormat.STRUCTURED:
            logger.info(
                "alert_notification",
                event_name=event.event,
                alert_id=alert.alert_id,
                greenhouse_id=alert.greenhouse_id,
                device_id=alert.device_id,
                condition_type=alert.condition_type.value,
                severity=alert.severity.value,
                value=alert.value,
                threshold=alert.threshold,
                sensor_type=alert.sensor_type,
                message=alert.message,
            )
            return

        self.stream.write(self.format_line(event) + "\n")
        self.stream.flush()

    def format_line(self, event: AlertEvent) -> str:
        """
        Render an event as a single line.

        Args:
            event: The alert event.

        Returns:
            str: ``[SEVERITY] greenhouse/device CONDITION: message``
        """
        alert = event.alert
        line = (
            f"[{alert.severity.value}] {alert.greenhouse_id}/{alert.device_id} "
            f"{alert.condition_type.value}: {alert.message}"
        )
        if not self.use_colors:
            return line
        return f"{SEVERITY_COLORS[alert.severity]}{line}{AnsiColors.RESET}"


def create_console_channel(
    format: OutputFormat | str = OutputFormat.STRUCTURED,
    use_colors: bool = True,
) -> ConsoleChannel:
    """
    Factory function to create a ConsoleChannel.

    Args:
        format: Output format, as enum or config string.
        use_colors: Whether the simple format adds ANSI colours.

    Returns:
        ConsoleChannel: A new channel instance.
    """
    return ConsoleChannel(format=OutputFormat(format), use_colors=use_colors)
