"""Deterministic stand-ins for the two model stages.

Used when USE_MOCK_AI is on so the whole generate-report flow runs
without a Gemini key. Output depends only on the inputs.
"""

from __future__ import annotations

from siterecap.models.contracts import (
    Delivery,
    EquipmentItem,
    Hazard,
    MaterialItem,
    ObservedTask,
    PersonnelSummary,
    PhotoAnalysis,
    ReportData,
    ReportSection,
    SafetyIssue,
    SafetySummary,
)

_SCENES = (
    ("Kitchen", "Cabinets", "install base cabinets", "circular saw", "plywood"),
    ("Bathroom", "Plumbing Rough", "rough-in supply lines", "pipe cutter", "PEX tubing"),
    ("Living", "Drywall", "hang drywall sheets", "drywall lift", "gypsum board"),
    ("Exterior", "Framing", "frame exterior wall", "nail gun", "lumber"),
)


async def analyze_photo(url: str, photo_index: int) -> PhotoAnalysis:
    space, phase, task, tool, material = _SCENES[(photo_index - 1) % len(_SCENES)]
    return PhotoAnalysis(
        photo_index=photo_index,
        space=space,
        phase=phase,
        caption=f"Crew working on {task} in the {space.lower()}",
        objects=[tool, material],
        tasks=[ObservedTask(name=task, confidence=0.85)],
        hazards=[Hazard(type="debris on floor", severity="low")] if photo_index % 2 == 0 else [],
        personnel_count=2,
        equipment=[EquipmentItem(name=tool, category="power_tool")],
        materials=[MaterialItem(name=material, status="in_use")],
    )


async def generate_report(
    analyses: list[PhotoAnalysis], project_name: str, date: str
) -> ReportData:
    sections: dict[tuple[str, str], ReportSection] = {}
    for analysis in analyses:
        if analysis.error or not analysis.space:
            continue
        section = sections.setdefault(
            (analysis.space, analysis.phase),
            ReportSection(space=analysis.space, phase=analysis.phase),
        )
        for task in analysis.tasks:
            existing = next((t for t in section.tasks if t.name == task.name), None)
            if existing is None:
                section.tasks.append(
                    ObservedTask(
                        name=task.name, confidence=task.confidence, photos=[analysis.photo_index]
                    )
                )
            else:
                existing.photos.append(analysis.photo_index)
                existing.confidence = min(existing.confidence + 0.05, 1.0)
        for hazard in analysis.hazards:
            section.hazards.append(
                Hazard(type=hazard.type, severity=hazard.severity, photo=analysis.photo_index)
            )

    crew = max((a.personnel_count for a in analyses), default=0)
    equipment: dict[str, EquipmentItem] = {}
    materials: dict[str, MaterialItem] = {}
    for analysis in analyses:
        for item in analysis.equipment:
            entry = equipment.setdefault(
                item.name, EquipmentItem(name=item.name, category=item.category)
            )
            entry.photos.append(analysis.photo_index)
        for material in analysis.materials:
            entry = materials.setdefault(
                material.name, MaterialItem(name=material.name, status=material.status)
            )
            entry.photos.append(analysis.photo_index)

    ordered = list(sections.values())
    if not ordered:
        ordered = [
            ReportSection(
                space="Unspecified",
                tasks=[ObservedTask(name="Progress documented", confidence=0.5)],
            )
        ]
    return ReportData(
        site_summary=(
            f"{len(analyses)} photos documented work at {project_name or 'the site'} on {date}."
        ),
        sections=ordered,
        personnel_summary=PersonnelSummary(total_count=crew, notes="Peak crew size observed"),
        equipment_summary=list(equipment.values()),
        materials_summary=list(materials.values()),
        deliveries_summary=[
            Delivery(type="material delivery", status="completed", time="morning", photos=[1])
        ]
        if analyses
        else [],
        safety_summary=SafetySummary(
            issues=[SafetyIssue(issue="proper PPE worn", severity="low")], compliance="good"
        ),
        next_day_plan=[f"Continue {s.phase.lower() or 'work'} in {s.space}" for s in ordered[:3]],
    )
