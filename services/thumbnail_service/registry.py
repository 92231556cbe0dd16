"""
Template registry.

Each template declares the form fields it needs, their defaults, and whether it
is drawn procedurally or by token substitution into SVG template files.
"""
import copy
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

FieldType = Literal["text", "textarea", "select", "image", "image_array", "logo_array"]


class SelectOption(BaseModel):
    value: str
    label: str


class VisibilityRule(BaseModel):
    field: str
    equals: Optional[Any] = None
    not_equals: Optional[Any] = None


class DynamicMaxItems(BaseModel):
    field: str


class FieldDefinition(BaseModel):
    id: str
    type: FieldType
    label: str
    placeholder: Optional[str] = None
    max_length: Optional[int] = None
    required: bool = False
    max_items: Optional[int] = None
    rows: Optional[int] = None
    options: List[SelectOption] = Field(default_factory=list)
    default_value: Optional[Any] = None
    helper_text: Optional[str] = None
    show_when: Optional[VisibilityRule] = None
    dynamic_max_items: Optional[DynamicMaxItems] = None


class TemplateDefinition(BaseModel):
    id: str
    name: str
    description: str
    kind: Literal["procedural", "token"]
    fields: List[FieldDefinition]
    default_values: Dict[str, Any]
    # asset subdirectory holding template specific backgrounds; shared backgrounds otherwise
    background_set: Optional[str] = None


TEMPLATES: Dict[str, TemplateDefinition] = {
    "dotnet-blog": TemplateDefinition(
        id="dotnet-blog",
        name=".NET Blog",
        description="Blog post thumbnails with title, subtitle, pill badge, and logos",
        kind="procedural",
        fields=[
            FieldDefinition(id="pill", type="text", label="Pill/Badge (optional)", placeholder="e.g., Tutorial, Guide", max_length=30),
            FieldDefinition(id="title", type="text", label="Title", placeholder="Enter your title", max_length=100, required=True),
            FieldDefinition(id="subtitle", type="text", label="Subtitle (optional)", placeholder="Enter subtitle", max_length=150),
            FieldDefinition(id="logos", type="logo_array", label="Logos (optional)", max_items=3, helper_text="Select up to 3 logos"),
            FieldDefinition(
                id="imageLayout",
                type="select",
                label="Image Layout (optional)",
                options=[
                    SelectOption(value="none", label="None"),
                    SelectOption(value="circle", label="Circle"),
                    SelectOption(value="split", label="Split"),
                    SelectOption(value="overlay", label="Overlay"),
                ],
                default_value="none",
                helper_text="Note: Selecting an image layout will clear any selected logos",
            ),
            FieldDefinition(
                id="layoutImage",
                type="image",
                label="Layout Image",
                show_when=VisibilityRule(field="imageLayout", not_equals="none"),
            ),
        ],
        default_values={
            "pill": "",
            "title": "",
            "subtitle": "",
            "logos": [],
            "imageLayout": "none",
            "layoutImage": None,
        },
    ),
    "dotnet-community-standup": TemplateDefinition(
        id="dotnet-community-standup",
        name=".NET Community Standup",
        description="YouTube show thumbnails with episode topic and guest photos",
        kind="token",
        background_set="dotnet-community-standup",
        fields=[
            FieldDefinition(
                id="pill",
                type="textarea",
                label="Pill/Badge (2 lines)",
                placeholder="e.g., ASP.NET CORE\nCOMMUNITY STANDUP",
                max_length=50,
                rows=2,
                default_value="ASP.NET CORE\nCOMMUNITY STANDUP",
            ),
            FieldDefinition(
                id="topic",
                type="text",
                label="Episode Topic",
                placeholder="e.g., Building AI apps with the new .NET AI template",
                max_length=100,
                required=True,
            ),
            FieldDefinition(
                id="guestCount",
                type="select",
                label="Number of Guests",
                options=[
                    SelectOption(value="2", label="2 Guests"),
                    SelectOption(value="3", label="3 Guests"),
                    SelectOption(value="4", label="4 Guests"),
                ],
                default_value="3",
            ),
            FieldDefinition(
                id="guests",
                type="image_array",
                label="Guest Photos",
                helper_text="Upload guest headshot photos (circular crop will be applied)",
                max_items=4,
                dynamic_max_items=DynamicMaxItems(field="guestCount"),
            ),
        ],
        default_values={
            "pill": "ASP.NET CORE\nCOMMUNITY STANDUP",
            "topic": "",
            "guestCount": "3",
            "guests": [],
        },
    ),
    "on-dotnet-live": TemplateDefinition(
        id="on-dotnet-live",
        name="On .NET Live",
        description="Live show thumbnails with title, guest names, schedule, and guest photos",
        kind="token",
        background_set="on-dotnet-live",
        fields=[
            FieldDefinition(id="title", type="text", label="Title", max_length=120, required=True),
            FieldDefinition(
                id="guestCount",
                type="select",
                label="Number of Guests",
                options=[
                    SelectOption(value="1", label="1 Guest"),
                    SelectOption(value="2", label="2 Guests"),
                ],
                default_value="1",
            ),
            FieldDefinition(id="guest1Name", type="text", label="Guest 1 Name", max_length=40),
            FieldDefinition(
                id="guest2Name",
                type="text",
                label="Guest 2 Name",
                max_length=40,
                show_when=VisibilityRule(field="guestCount", equals="2"),
            ),
            FieldDefinition(id="day", type="text", label="Day", placeholder="e.g., Monday, June 3", max_length=40),
            FieldDefinition(id="time", type="text", label="Time", placeholder="e.g., 9 AM PT", max_length=40),
            FieldDefinition(
                id="guests",
                type="image_array",
                label="Guest Photos",
                max_items=2,
                dynamic_max_items=DynamicMaxItems(field="guestCount"),
            ),
        ],
        default_values={
            "title": "",
            "guestCount": "1",
            "guest1Name": "",
            "guest2Name": "",
            "day": "",
            "time": "",
            "guests": [],
        },
    ),
}

DEFAULT_TEMPLATE_ID = "dotnet-blog"


def get_template(template_id: str) -> Optional[TemplateDefinition]:
    return TEMPLATES.get(template_id)


def get_template_ids() -> List[str]:
    return list(TEMPLATES.keys())


def get_all_templates() -> List[TemplateDefinition]:
    return list(TEMPLATES.values())


def get_default_values(template_id: str) -> Dict[str, Any]:
    """Fresh copy of a template's defaults ({} for unknown templates)."""
    template = get_template(template_id)
    return copy.deepcopy(template.default_values) if template else {}


def is_field_visible(field: FieldDefinition, values: Mapping[str, Any]) -> bool:
    rule = field.show_when
    if rule is None:
        return True
    current = values.get(rule.field)
    if rule.equals is not None and current != rule.equals:
        return False
    if rule.not_equals is not None and current == rule.not_equals:
        return False
    return True


def max_items_for(field: FieldDefinition, values: Mapping[str, Any]) -> Optional[int]:
    """Effective item limit for array fields, following a linked count field when declared."""
    if field.dynamic_max_items is not None:
        try:
            dynamic = int(values.get(field.dynamic_max_items.field))
        except (TypeError, ValueError):
            dynamic = None
        if dynamic is not None and dynamic > 0:
            return min(dynamic, field.max_items) if field.max_items else dynamic
    return field.max_items
