"""Rendering of invitation and reminder emails (HTML + plain text)."""
from datetime import datetime
from typing import NamedTuple

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from event_manager.schemas.notification import EventSnapshot


class RenderedMessage(NamedTuple):
    subject: str
    html: str
    text: str


def format_event_date(value: str) -> str:
    """``2024-01-10`` -> ``Wednesday, January 10, 2024``; other input is returned as-is."""
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        return value
    return f"{parsed:%A}, {parsed:%B} {parsed.day}, {parsed.year}"


def format_event_time(value: str) -> str:
    """``09:00`` -> ``9:00 AM``; other input is returned as-is."""
    for pattern in ("%H:%M", "%H:%M:%S"):
        try:
            parsed = datetime.strptime(value, pattern)
        except (TypeError, ValueError):
            continue
        hour = parsed.hour % 12 or 12
        return f"{hour}:{parsed:%M} {parsed:%p}"
    return value


SUBJECTS = {
    "invitation": "Event Invitation: {title}",
    "reminder": "Reminder: {title} - {date}",
}


class TemplateRenderer:
    def __init__(self, app_name: str = "Event Manager"):
        self.app_name = app_name
        self.env = Environment(
            loader=PackageLoader("event_manager.notifications", "templates"),
            autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["event_date"] = format_event_date
        self.env.filters["event_time"] = format_event_time

    def render(self, kind: str, event: EventSnapshot, attendee_name: str) -> RenderedMessage:
        if kind not in SUBJECTS:
            raise ValueError(f"Unknown notification kind: {kind}")
        context = {"event": event, "attendee_name": attendee_name, "app_name": self.app_name}
        subject = SUBJECTS[kind].format(title=event.title, date=format_event_date(event.date))
        html = self.env.get_template(f"{kind}.html").render(context)
        text = self.env.get_template(f"{kind}.txt").render(context)
        return RenderedMessage(subject=subject, html=html, text=text)
