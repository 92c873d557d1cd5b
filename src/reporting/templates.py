"""
Report template model.

A template is a declarative description of what a report contains: the
fields to extract, the filters, sort keys and group keys applied to the
fetched records, and the layout/styling used by the renderers. This module
is pure data plus validation; it performs no I/O.
"""
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from src.core.models import ReportFormat


class DatasetType(str, Enum):
    CANDIDATE_REPORT = "CANDIDATE_REPORT"
    TRAINING_REPORT = "TRAINING_REPORT"
    PAYMENT_REPORT = "PAYMENT_REPORT"
    ANALYTICS_REPORT = "ANALYTICS_REPORT"
    CUSTOM_REPORT = "CUSTOM_REPORT"

    @classmethod
    def normalize(cls, value: Any) -> Any:
        """Accept the short tags (CANDIDATE, TRAINING, ...) as aliases."""
        if isinstance(value, str):
            upper = value.strip().upper()
            if not upper.endswith("_REPORT"):
                upper = f"{upper}_REPORT"
            return upper
        return value


class TemplateCategory(str, Enum):
    OPERATIONAL = "OPERATIONAL"
    FINANCIAL = "FINANCIAL"
    PERFORMANCE = "PERFORMANCE"
    COMPLIANCE = "COMPLIANCE"
    CUSTOM = "CUSTOM"


class FieldType(str, Enum):
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DATE = "DATE"
    BOOLEAN = "BOOLEAN"
    ARRAY = "ARRAY"
    OBJECT = "OBJECT"


class Aggregation(str, Enum):
    SUM = "SUM"
    COUNT = "COUNT"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    NONE = "NONE"


class FilterOperator(str, Enum):
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    CONTAINS = "CONTAINS"
    NOT_CONTAINS = "NOT_CONTAINS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    BETWEEN = "BETWEEN"
    IN = "IN"
    NOT_IN = "NOT_IN"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class Orientation(str, Enum):
    PORTRAIT = "PORTRAIT"
    LANDSCAPE = "LANDSCAPE"


class PageSize(str, Enum):
    A4 = "A4"
    A3 = "A3"
    LETTER = "LETTER"
    LEGAL = "LEGAL"


class ReportField(BaseModel):
    """One output column."""

    name: str = Field(..., description="Unique field identifier within the template")
    label: str = Field(..., description="Column header shown in rendered output")
    type: FieldType = Field(FieldType.TEXT, description="Value type")
    source: str = Field(..., description="Dotted path into the record, e.g. 'candidate.name'")
    format: Optional[str] = Field(None, description="Display format: 'currency', 'percentage', 'date'")
    aggregation: Aggregation = Aggregation.NONE
    visible: bool = True
    order: int = 0


class ReportFilter(BaseModel):
    field: str = Field(..., description="Dotted path the predicate reads")
    operator: FilterOperator
    value: Any = None


class SortKey(BaseModel):
    field: str
    direction: SortDirection = SortDirection.ASC

    @field_validator('direction', mode='before')
    @classmethod
    def upper_direction(cls, v):
        return v.upper() if isinstance(v, str) else v


class Margins(BaseModel):
    top: int = 50
    bottom: int = 50
    left: int = 50
    right: int = 50


class Layout(BaseModel):
    orientation: Orientation = Orientation.PORTRAIT
    page_size: PageSize = PageSize.A4
    margins: Margins = Field(default_factory=Margins)
    header_height: int = 80
    footer_height: int = 50


class Styling(BaseModel):
    primary_color: str = "#3B82F6"
    secondary_color: str = "#6B7280"
    font_family: str = "Helvetica"
    font_size: int = 12
    header_font_size: int = 16

    @field_validator('primary_color', 'secondary_color')
    @classmethod
    def validate_hex_color(cls, v: str) -> str:
        stripped = v.lstrip('#')
        if len(stripped) != 6 or any(c not in "0123456789abcdefABCDEF" for c in stripped):
            raise ValueError("colors must be hex values like '#3B82F6'")
        return f"#{stripped.upper()}"


class ReportTemplateSpec(BaseModel):
    """Everything the generation engine needs to know about a template."""

    name: str
    description: Optional[str] = None
    type: DatasetType
    category: TemplateCategory = TemplateCategory.OPERATIONAL
    fields: List[ReportField] = Field(default_factory=list)
    filters: List[ReportFilter] = Field(default_factory=list)
    sort_by: List[SortKey] = Field(default_factory=list)
    group_by: List[str] = Field(default_factory=list)
    format: ReportFormat = ReportFormat.PDF
    layout: Layout = Field(default_factory=Layout)
    styling: Styling = Field(default_factory=Styling)
    is_public: bool = False

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        return DatasetType.normalize(v)

    def visible_fields(self) -> List[ReportField]:
        """Visible fields in display order; equal orders keep declaration order."""
        return sorted((f for f in self.fields if f.visible), key=lambda f: f.order)


_LIST_OPERATORS = {FilterOperator.IN, FilterOperator.NOT_IN}
_SCALAR_OPERATORS = {
    FilterOperator.EQUALS,
    FilterOperator.NOT_EQUALS,
    FilterOperator.CONTAINS,
    FilterOperator.NOT_CONTAINS,
    FilterOperator.GREATER_THAN,
    FilterOperator.LESS_THAN,
}


def validate_template(template: ReportTemplateSpec) -> List[str]:
    """
    Check a template's structure.

    Validation is advisory: callers decide whether to block a save. The
    generation engine does not call this.

    Returns:
        A list of error messages; empty when the template is valid.
    """
    errors: List[str] = []

    if not template.fields:
        errors.append("Template must have at least one field")

    seen = set()
    duplicates = []
    for report_field in template.fields:
        if report_field.name in seen and report_field.name not in duplicates:
            duplicates.append(report_field.name)
        seen.add(report_field.name)
    if duplicates:
        errors.append(f"Duplicate field names: {', '.join(duplicates)}")

    for report_field in template.fields:
        if not report_field.source.strip():
            errors.append(f"Field '{report_field.name}' has an empty source path")

    for index, flt in enumerate(template.filters):
        label = f"Filter {index + 1} ({flt.field} {flt.operator.value})"
        value = flt.value
        if flt.operator == FilterOperator.BETWEEN:
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                errors.append(f"{label}: BETWEEN requires a 2-element value")
        elif flt.operator in _LIST_OPERATORS:
            if not isinstance(value, (list, tuple)):
                errors.append(f"{label}: {flt.operator.value} requires a list value")
        elif flt.operator in _SCALAR_OPERATORS:
            if isinstance(value, (list, tuple, dict)):
                errors.append(f"{label}: {flt.operator.value} requires a single value")
            elif value is None and flt.operator not in (FilterOperator.EQUALS, FilterOperator.NOT_EQUALS):
                errors.append(f"{label}: a value is required")
            elif flt.operator in (FilterOperator.GREATER_THAN, FilterOperator.LESS_THAN) and isinstance(value, bool):
                errors.append(f"{label}: comparison requires a number or date")

    for path in template.group_by:
        if not path or not path.strip():
            errors.append("Group-by entries must be non-empty field paths")
            break

    return errors
