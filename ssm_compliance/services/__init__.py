"""Domain services: deadlines, obligations, scoring, alerts, notifications, sweep."""
