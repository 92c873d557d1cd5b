"""Base generator class."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from src.core.models import ReportFormat
from src.core.utils import sanitize_filename, utcnow
from src.reporting.filters import format_cell
from src.reporting.templates import ReportField, ReportTemplateSpec

Record = Dict[str, Any]
ReportData = Union[List[Record], Dict[str, List[Record]]]


@dataclass
class Artifact:
    """One rendered report on disk."""
    path: Path
    format: ReportFormat
    media_type: str
    record_count: int
    generated_at: datetime = field(default_factory=utcnow)

    @property
    def filename(self) -> str:
        return self.path.name


class BaseGenerator(ABC):
    """Base class for report generators."""

    format: ReportFormat
    extension: str
    media_type: str

    def __init__(self, output_dir: Union[str, Path] = "outputs"):
        """Initialize generator."""
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @abstractmethod
    def generate(
        self,
        template: ReportTemplateSpec,
        data: ReportData,
        parameters: Optional[Dict[str, Any]] = None,
        generated_at: Optional[datetime] = None,
        filename: str = None,
    ) -> Artifact:
        """
        Render filtered, sorted and optionally grouped records to a file.

        Args:
            template: template driving columns, layout and styling
            data: flat record list, or mapping of group key to records
            parameters: runtime parameters echoed into the output where relevant
            generated_at: timestamp printed in the report
            filename: Optional custom filename

        Returns:
            The written artifact
        """
        pass

    def _get_filename(self, prefix: str, custom_name: str = None) -> str:
        """Generate filename with timestamp."""
        if custom_name:
            return custom_name
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        return f"{sanitize_filename(prefix)}-{timestamp}.{self.extension}"

    def _artifact(self, path: Path, data: ReportData, generated_at: datetime) -> Artifact:
        return Artifact(
            path=path,
            format=self.format,
            media_type=self.media_type,
            record_count=count_records(data),
            generated_at=generated_at,
        )

    @staticmethod
    def _row(record: Record, fields: List[ReportField]) -> List[str]:
        return [format_cell(record, f) for f in fields]


def is_grouped(data: ReportData) -> bool:
    return isinstance(data, dict)


def iter_groups(data: ReportData) -> Iterator[Tuple[Optional[str], List[Record]]]:
    """Yield (group key, records); a flat list yields a single (None, records)."""
    if is_grouped(data):
        yield from data.items()
    else:
        yield None, data


def count_records(data: ReportData) -> int:
    if is_grouped(data):
        return sum(len(items) for items in data.values())
    return len(data)
