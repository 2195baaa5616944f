"""Abstract parser interface for local workbook sources."""
from abc import ABC, abstractmethod
from typing import Tuple, Union

from sheetmind.models.workbook import Workbook

ParserInput = Union[bytes, str]


class WorkbookParser(ABC):
    """Abstract base class for all local source parsers.

    New source formats (xlsx, CSV/TSV, HTML clipboard) plug into the parser
    registry without changes to the ingestion service.

    Implementations must provide:
    - parse(): Turn raw content into a Workbook
    - get_parser_name(): Return unique parser identifier
    - supported_extensions: File extensions routed to this parser
    """

    supported_extensions: Tuple[str, ...] = ()

    @abstractmethod
    def parse(self, content: ParserInput, source_label: str = "") -> Workbook:
        """Parse raw content into a Workbook.

        Args:
            content: File bytes or decoded text
            source_label: Human-readable origin (file name, URL)

        Returns:
            Workbook with sheets in source order

        Raises:
            ParserError: If the content cannot be parsed
        """
        pass

    @abstractmethod
    def get_parser_name(self) -> str:
        """Return unique identifier for this parser type.

        Returns:
            Parser identifier string (e.g., "xlsx", "csv", "html")
        """
        pass
