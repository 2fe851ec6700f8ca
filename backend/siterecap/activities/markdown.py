"""Owner and GC Markdown renderings of a ReportData."""

from __future__ import annotations

from siterecap.models.contracts import ReportData, Weather
from siterecap.utils.numbers import round_half_up

BULLET = "•"
NO_WEATHER = "—"
OWNER_MAX_TASKS = 6


def weather_badge(weather: Weather | None) -> str:
    if weather is None:
        return NO_WEATHER
    return f"🌤️ {weather.temperature}°F {weather.description}"


def percent(confidence: float) -> int:
    return round_half_up(confidence * 100)


def _photos(photos: list[int]) -> str:
    if not photos:
        return ""
    return f" (Photos: {', '.join(str(p) for p in photos)})"


def _header(title: str, project_name: str, date: str, weather: Weather | None) -> str:
    return f"# {title} - {project_name}\n**{date}** {BULLET} {weather_badge(weather)}\n\n"


def render_owner_markdown(
    report: ReportData, weather: Weather | None = None, project_name: str = "", date: str = ""
) -> str:
    """Plain-language update for the property owner."""
    md = _header("Daily Update", project_name, date, weather)

    if report.site_summary:
        md += f"## Today's Progress\n{report.site_summary}\n\n"

    tasks = [task for section in report.sections for task in section.tasks][:OWNER_MAX_TASKS]
    if tasks:
        md += "## Work Completed\n"
        for task in tasks:
            md += f"{BULLET} {task.name} ({percent(task.confidence)}%)\n"
        md += "\n"

    if report.personnel_summary and report.personnel_summary.total_count > 0:
        md += "## Crew on Site\n"
        md += f"{BULLET} {report.personnel_summary.total_count} workers present\n\n"

    if report.deliveries_summary:
        md += "## Deliveries\n"
        for delivery in report.deliveries_summary:
            md += f"{BULLET} {delivery.type} - {delivery.status}\n"
        md += "\n"

    if report.safety_summary and report.safety_summary.compliance:
        md += "## Safety\n"
        md += f"{BULLET} Site safety compliance: {report.safety_summary.compliance}\n\n"

    if report.next_day_plan:
        md += "## What's Next\n"
        for item in report.next_day_plan:
            md += f"{BULLET} {item}\n"

    return md


def render_gc_markdown(
    report: ReportData, weather: Weather | None = None, project_name: str = "", date: str = ""
) -> str:
    """Detailed report for the general contractor, grouped by space and phase."""
    md = _header("GC Daily Report", project_name, date, weather)

    personnel = report.personnel_summary
    if personnel and personnel.total_count > 0:
        md += "## Manpower\n"
        md += f"{BULLET} Total crew: {personnel.total_count} workers\n"
        if personnel.notes:
            md += f"{BULLET} Notes: {personnel.notes}\n"
        md += "\n"

    if report.equipment_summary:
        md += "## Equipment on Site\n"
        for equipment in report.equipment_summary:
            md += f"{BULLET} {equipment.name} - {equipment.category}{_photos(equipment.photos)}\n"
        md += "\n"

    if report.materials_summary:
        md += "## Materials\n"
        for material in report.materials_summary:
            md += f"{BULLET} {material.name} - {material.status}{_photos(material.photos)}\n"
        md += "\n"

    if report.deliveries_summary:
        md += "## Deliveries\n"
        for delivery in report.deliveries_summary:
            when = f" ({delivery.time})" if delivery.time else ""
            md += f"{BULLET} {delivery.type} - {delivery.status}{when}{_photos(delivery.photos)}\n"
        md += "\n"

    for section in report.sections:
        heading = section.space + (f" - {section.phase}" if section.phase else "")
        md += f"## {heading}\n"
        if section.tasks:
            md += "### Tasks Completed\n"
            for task in section.tasks:
                md += (
                    f"{BULLET} {task.name} - {percent(task.confidence)}%{_photos(task.photos)}\n"
                )
            md += "\n"
        if section.hazards:
            md += "### Safety Notes\n"
            for hazard in section.hazards:
                md += f"{BULLET} {hazard.type} - {hazard.severity.upper()}\n"
            md += "\n"

    safety = report.safety_summary
    if safety and safety.issues:
        md += "## Safety Summary\n"
        md += f"{BULLET} Overall compliance: {safety.compliance or 'unknown'}\n"
        for issue in safety.issues:
            md += f"{BULLET} {issue.issue} - {issue.severity.upper()}{_photos(issue.photos)}\n"
        md += "\n"

    if report.delays_summary:
        md += "## Delays & Issues\n"
        for delay in report.delays_summary:
            duration = f" ({delay.duration})" if delay.duration else ""
            md += f"{BULLET} {delay.event} - {delay.impact} impact{duration}\n"
        md += "\n"

    if report.next_day_plan:
        md += "## Tomorrow's Plan\n"
        for item in report.next_day_plan:
            md += f"{BULLET} {item}\n"

    return md
