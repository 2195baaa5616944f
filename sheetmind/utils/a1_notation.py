"""A1 notation helpers (column letters, cell addresses, sheet-qualified ranges)."""


def column_index_to_letter(index: int) -> str:
    """Convert a 1-based column number to letters (1 -> A, 27 -> AA, 702 -> ZZ)."""
    col = max(1, index)
    letters = ""
    while col > 0:
        remainder = (col - 1) % 26
        letters = chr(65 + remainder) + letters
        col = (col - 1) // 26
    return letters


def encode_cell_address(row: int, col: int) -> str:
    """Encode 0-based (row, col) as an A1 address: (6, 1) -> 'B7'."""
    return f"{column_index_to_letter(col + 1)}{row + 1}"


def quote_sheet_title(title: str) -> str:
    """Quote a sheet title for use in an A1 range: It's -> 'It''s'."""
    return "'" + title.replace("'", "''") + "'"


def build_range(title: str, start_row: int, end_column: str, end_row: int) -> str:
    """Build a sheet-qualified range such as 'Data'!A1:ZZ10000 (rows are 1-based)."""
    return f"{quote_sheet_title(title)}!A{start_row}:{end_column}{end_row}"
