"""CSV export of removal results.

Serializes the flattened record set as delimited text:

- The header is the key list of the first row
- Every row is aligned to the header by key; missing keys and None become ""
- Values containing the delimiter, a double quote or a line break are
  quoted, with embedded quotes doubled (RFC 4180)

The output is a lossless transcription: parsing it with ``csv.reader``
gives back every value exactly.
"""

import csv
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from ...api.exceptions import ValidationError

logger = logging.getLogger(__name__)


def _write_rows(handle, rows: Sequence[Mapping[str, Any]], delimiter: str) -> None:
    fieldnames = list(rows[0].keys())
    writer = csv.DictWriter(
        handle,
        fieldnames=fieldnames,
        delimiter=delimiter,
        quotechar='"',
        doublequote=True,
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\r\n",
        restval="",
        extrasaction="ignore",
    )
    writer.writeheader()
    for row in rows:
        writer.writerow({key: ("" if value is None else value) for key, value in row.items()})


def records_to_csv(rows: Sequence[Mapping[str, Any]], delimiter: str = ",") -> str:
    """Render rows as CSV text. An empty sequence renders as ""."""
    if not rows:
        return ""
    buffer = io.StringIO()
    _write_rows(buffer, rows, delimiter)
    return buffer.getvalue()


def write_csv(
    path: str | Path,
    rows: Sequence[Mapping[str, Any]],
    delimiter: str = ",",
) -> Path:
    """Write rows to a UTF-8 CSV file, creating parent directories.

    Returns:
        The path written

    Raises:
        ValidationError: If there are no rows to export
    """
    if not rows:
        raise ValidationError("No records to export")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        _write_rows(handle, rows, delimiter)

    logger.info(f"Wrote {len(rows)} record(s) to {path}")
    return path


def default_output_path(
    output_dir: str | Path,
    dry_run: bool,
    now: Optional[datetime] = None,
) -> Path:
    """Timestamped result file name, e.g. ``results_202610191432.csv``."""
    now = now or datetime.now()
    base_name = "dryrun_results" if dry_run else "results"
    return Path(output_dir) / f"{base_name}_{now.strftime('%Y%m%d%H%M')}.csv"
