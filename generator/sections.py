"""Section catalogs for each document type and document assembly."""
from dataclasses import dataclass
from typing import Dict, List, Tuple, Any

from shared.errors import TemplateRenderError, UnknownJobTypeError


SECTION_INSTRUCTION = """Generate the "{title}" section for a {document_label} for {brand_name}.

Client Information:
{client_context}

Requirements:
- This should be a complete, detailed section
- Use professional business language
- Focus specifically on {focus}
- Output in markdown format starting with ## {title}

Generate only this section, nothing else."""


@dataclass(frozen=True)
class SectionDefinition:
    """One ordered section of a document type."""
    name: str
    title: str
    order: int
    instruction_template: str = SECTION_INSTRUCTION
    focus: str = ""


def _section(name: str, title: str, order: int, focus: str = "") -> SectionDefinition:
    return SectionDefinition(name=name, title=title, order=order, focus=focus or title)


BUSINESS_PLAN_SECTIONS: Tuple[SectionDefinition, ...] = (
    _section("executive_summary", "Executive Summary", 1,
             "the vision, value proposition and headline goals"),
    _section("market_analysis", "Market Analysis", 2,
             "the target industry, audience and demographics"),
    _section("competitive_landscape", "Competitive Landscape", 3,
             "named competitors and the client's competitive advantages"),
    _section("product_services", "Products & Services", 4),
    _section("marketing_strategy", "Marketing Strategy", 5),
    _section("financial_projections", "Financial Projections", 6,
             "revenue streams and scaling goals"),
    _section("operations_plan", "Operations Plan", 7),
    _section("team_structure", "Team Structure", 8),
)

DELIVERABLE_SECTIONS: Tuple[SectionDefinition, ...] = (
    _section("introduction", "Introduction", 1),
    _section("objectives", "Objectives", 2,
             "this month's objectives and how they serve the client's vision"),
    _section("content", "Main Content", 3,
             "{focus_area} for month {month}"),
    _section("action_items", "Action Items", 4),
    _section("next_steps", "Next Steps", 5),
)

SECTION_CATALOGS: Dict[str, Tuple[SectionDefinition, ...]] = {
    "BUSINESS_PLAN": BUSINESS_PLAN_SECTIONS,
    "DELIVERABLE": DELIVERABLE_SECTIONS,
}

DOCUMENT_LABELS = {
    "BUSINESS_PLAN": "business plan",
    "DELIVERABLE": "monthly deliverable",
}

# Wording used when an optional context field is left empty.
FIELD_FALLBACKS = {
    "focus_area": "the month's priorities",
}


def get_catalog(job_type: str) -> Tuple[SectionDefinition, ...]:
    """Return the ordered sections for a job type."""
    catalog = SECTION_CATALOGS.get(job_type)
    if catalog is None:
        raise UnknownJobTypeError(job_type)
    return catalog


def _format_client_context(context: Dict[str, Any]) -> str:
    lines = []
    for key, value in context.items():
        if key == "schema_version" or value in (None, "", []):
            continue
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        label = key.replace("_", " ").capitalize()
        lines.append(f"- {label}: {value}")
    return "\n".join(lines)


def render_instruction(job_type: str, section: SectionDefinition, context: Dict[str, Any]) -> str:
    """
    Render a section's instruction template against a prompt context.

    Templates may reference any prompt context field by name; a missing field
    is a catalog/context mismatch and cannot be fixed by retrying.
    """
    fields = {k: ("" if v is None else v) for k, v in context.items()}
    for key, fallback in FIELD_FALLBACKS.items():
        if key in fields and not str(fields[key]).strip():
            fields[key] = fallback
    try:
        focus = section.focus.format_map(fields)
        return section.instruction_template.format_map({
            **fields,
            "title": section.title,
            "focus": focus,
            "document_label": DOCUMENT_LABELS.get(job_type, job_type.lower()),
            "client_context": _format_client_context(context),
        })
    except (KeyError, IndexError, ValueError) as e:
        raise TemplateRenderError(
            f"Cannot render section '{section.name}' for {job_type}: {e!r}"
        ) from e


def assemble_document(generated_content: List[Dict[str, str]]) -> str:
    """Join generated sections, in stored order, into the final markdown body."""
    return "\n\n".join(section["content"] for section in generated_content)
