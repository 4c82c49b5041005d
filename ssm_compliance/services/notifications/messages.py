"""Notification message rendering (Romanian, as shown to organization members)."""

from __future__ import annotations

import html
from dataclasses import dataclass

from ssm_compliance.models import Alert
from ssm_compliance.obligation_types import Category, DispatchTrigger, SeverityTier

SMS_MAX_LENGTH: int = 320

CATEGORY_LABELS: dict[str, str] = {
    Category.MEDICAL.value: "Control medical",
    Category.TRAINING.value: "Instruire SSM/PSI",
    Category.EQUIPMENT.value: "Verificare echipament",
    Category.LEGAL.value: "Obligație legală",
}

SEVERITY_LABELS: dict[str, str] = {
    SeverityTier.EXPIRED.value: "EXPIRAT",
    SeverityTier.URGENT.value: "URGENT",
    SeverityTier.WARNING.value: "Avertizare",
    SeverityTier.ATTENTION.value: "Atenție",
    SeverityTier.INFO.value: "Informare",
    SeverityTier.OK.value: "În regulă",
}

_TRIGGER_INTRO: dict[str, str] = {
    DispatchTrigger.CREATED.value: "Termen de conformitate care necesită atenție",
    DispatchTrigger.ESCALATED.value: "Situația s-a agravat",
    DispatchTrigger.RESOLVED.value: "Alertă rezolvată",
    DispatchTrigger.REMINDER.value: "Alertă neconfirmată",
}


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    text: str
    short: str
    html: str | None = None
    link: str | None = None


def alerts_link(app_url: str) -> str:
    return f"{app_url.rstrip('/')}/dashboard/alerts"


def _truncate(text: str, limit: int = SMS_MAX_LENGTH) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _due_phrase(alert: Alert) -> str:
    if alert.due_date is None:
        return "fără termen stabilit"
    return f"termen {alert.due_date.strftime('%d.%m.%Y')}"


def _line(alert: Alert) -> str:
    category = CATEGORY_LABELS.get(alert.category, alert.category)
    severity = SEVERITY_LABELS.get(alert.severity, alert.severity)
    return f"[{severity}] {category}: {alert.title} ({_due_phrase(alert)})"


def render_alert(
    alert: Alert,
    trigger: DispatchTrigger | str,
    organization_name: str,
    app_url: str,
) -> RenderedMessage:
    trigger = DispatchTrigger(trigger)
    link = alerts_link(app_url)
    intro = _TRIGGER_INTRO[trigger.value]
    if trigger is DispatchTrigger.RESOLVED:
        severity = "Rezolvat"
    else:
        severity = SEVERITY_LABELS.get(alert.severity, alert.severity)
    category = CATEGORY_LABELS.get(alert.category, alert.category)

    subject = f"[{severity}] {category} - {organization_name}"
    text = "\n".join(
        [
            f"{intro} - {organization_name}",
            "",
            _line(alert) if trigger is not DispatchTrigger.RESOLVED else f"{category}: {alert.title}",
            "",
            f"Detalii: {link}",
        ]
    )
    body = (
        "<html><body>"
        f"<h2>{html.escape(intro)}</h2>"
        f"<p><strong>{html.escape(organization_name)}</strong></p>"
        f"<p>{html.escape(_line(alert))}</p>"
        f'<p><a href="{html.escape(link)}">Vezi alertele</a></p>'
        "</body></html>"
    )
    short = _truncate(f"{organization_name}: {severity} - {category}: {alert.title}. {link}")
    return RenderedMessage(subject=subject, text=text, short=short, html=body, link=link)


def render_digest(alerts: list[Alert], organization_name: str, app_url: str) -> RenderedMessage:
    """One combined message for several alerts, highest severity first."""
    ordered = sorted(alerts, key=lambda a: (-SeverityTier(a.severity).rank, a.id))
    link = alerts_link(app_url)
    top = SEVERITY_LABELS.get(ordered[0].severity, ordered[0].severity)
    subject = f"[{top}] {len(ordered)} alerte de conformitate - {organization_name}"
    lines = [f"Rezumat alerte - {organization_name}", "=" * 40, ""]
    lines.extend(f"- {_line(a)}" for a in ordered)
    lines.extend(["", f"Detalii: {link}"])
    rows = "".join(f"<li>{html.escape(_line(a))}</li>" for a in ordered)
    body = (
        "<html><body>"
        f"<h2>Rezumat alerte - {html.escape(organization_name)}</h2>"
        f"<ul>{rows}</ul>"
        f'<p><a href="{html.escape(link)}">Vezi alertele</a></p>'
        "</body></html>"
    )
    short = _truncate(f"{organization_name}: {len(ordered)} alerte ({top}). {link}")
    return RenderedMessage(subject=subject, text="\n".join(lines), short=short, html=body, link=link)


def render_reminder(
    alert: Alert,
    organization_name: str,
    app_url: str,
    hours_unacknowledged: int,
) -> RenderedMessage:
    """Escalation reminder sent to the organization's escalation contact."""
    link = alerts_link(app_url)
    severity = SEVERITY_LABELS.get(alert.severity, alert.severity)
    subject = f"[{severity}] Alertă neconfirmată de {hours_unacknowledged}h - {organization_name}"
    text = "\n".join(
        [
            f"Alertă neconfirmată de peste {hours_unacknowledged} ore - {organization_name}",
            "",
            _line(alert),
            "",
            f"Detalii: {link}",
        ]
    )
    short = _truncate(
        f"{organization_name}: alertă neconfirmată {hours_unacknowledged}h - {alert.title}. {link}"
    )
    return RenderedMessage(subject=subject, text=text, short=short, link=link)
