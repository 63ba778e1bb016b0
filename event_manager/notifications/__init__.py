"""Best-effort email notifications for event attendees."""
