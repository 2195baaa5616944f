"""Parser registry for dynamic parser registration and retrieval."""
from pathlib import PurePath
from typing import Dict, List, Optional, Type

from sheetmind.errors.exceptions import ParserError
from sheetmind.parsers.base_parser import WorkbookParser


# Global registry mapping parser type strings to parser classes
_parser_registry: Dict[str, Type[WorkbookParser]] = {}


def register_parser(parser_type: str, parser_class: Type[WorkbookParser]) -> None:
    """Register a parser class for a given parser type.

    Args:
        parser_type: Unique identifier for the parser (e.g., "xlsx")
        parser_class: Parser class that inherits from WorkbookParser

    Raises:
        ValueError: If parser_type is already registered
        TypeError: If parser_class does not inherit from WorkbookParser
    """
    if not issubclass(parser_class, WorkbookParser):
        raise TypeError(
            f"Parser class {parser_class.__name__} must inherit from WorkbookParser"
        )

    if parser_type in _parser_registry:
        raise ValueError(
            f"Parser type '{parser_type}' is already registered. "
            f"Existing: {_parser_registry[parser_type].__name__}"
        )

    _parser_registry[parser_type] = parser_class


def get_parser(parser_type: str) -> Optional[Type[WorkbookParser]]:
    return _parser_registry.get(parser_type)


def create_parser_instance(parser_type: str, **kwargs) -> WorkbookParser:
    """Create an instance of a parser for a given parser type.

    Raises:
        ParserError: If parser type is not registered
    """
    parser_class = get_parser(parser_type)
    if parser_class is None:
        available = ", ".join(_parser_registry.keys()) if _parser_registry else "none"
        raise ParserError(
            f"Parser type '{parser_type}' is not registered. "
            f"Available parsers: {available}"
        )

    return parser_class(**kwargs)


def parser_for_filename(filename: str) -> WorkbookParser:
    """Pick a parser by file extension.

    Raises:
        ParserError: If no registered parser handles the extension
    """
    suffix = PurePath(filename).suffix.lower().lstrip(".")
    for parser_type, parser_class in _parser_registry.items():
        if suffix in parser_class.supported_extensions:
            return create_parser_instance(parser_type)
    raise ParserError(
        f"Unsupported file type '.{suffix}' for {filename}",
        details={"filename": filename},
    )


def list_registered_parsers() -> List[str]:
    return list(_parser_registry.keys())
