"""Row sources: CSV files read into rows of raw cell text."""

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Row:
    """One table row: column name -> raw cell text, plus its 1-based index."""
    index: int
    values: Dict[str, str] = field(default_factory=dict)


@dataclass
class RowTable:
    """Column headers followed by data rows."""
    headers: List[str]
    rows: List[Row]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)


def read_rows(path: Union[str, Path], encoding: str = 'utf-8-sig') -> RowTable:
    """
    Read a CSV file fully into memory.

    Missing trailing cells read as empty strings; every value stays text.

    Args:
        path: CSV file path
        encoding: File encoding (default strips a UTF-8 BOM)

    Returns:
        RowTable with headers and rows numbered from 1

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file has no header line
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    with open(path, 'r', encoding=encoding, newline='') as f:
        reader = csv.DictReader(f, restval='')
        if reader.fieldnames is None:
            raise ValueError(f"CSV file has no header line: {path}")

        headers = [name.strip() for name in reader.fieldnames]
        rows = []
        for index, record in enumerate(reader, start=1):
            values = {}
            for raw_name, name in zip(reader.fieldnames, headers):
                value = record.get(raw_name)
                values[name] = value if value is not None else ''
            rows.append(Row(index=index, values=values))

    logger.debug(f"Read {len(rows)} rows with columns {headers} from {path}")
    return RowTable(headers=headers, rows=rows)
