import csv
import gzip
import io
import uuid
from typing import Iterable

from reportgen.features.reports.errors import ReportEncodingError
from reportgen.features.reports.source import Monster

CSV_HEADER = ["Name", "Id", "Category", "Description", "Image", "Common_Locations", "Drops", "Dlc"]
CONTENT_TYPE = "application/gzip"


def artifact_key(user_id: uuid.UUID, report_id: uuid.UUID) -> str:
    return f"users/{user_id}/report/{report_id}.csv.gz"


def _row(monster: Monster) -> list[str]:
    return [
        monster.name,
        str(monster.id),
        monster.category,
        monster.description,
        monster.image,
        ", ".join(monster.common_locations or []),
        ", ".join(monster.drops or []),
        "true" if monster.dlc else "false",
    ]


def encode_records(records: Iterable[Monster]) -> bytes:
    """Render records as gzip-compressed CSV with the fixed report header."""
    buffer = io.BytesIO()
    try:
        with gzip.GzipFile(fileobj=buffer, mode="wb") as gz:
            with io.TextIOWrapper(gz, encoding="utf-8", newline="") as text:
                writer = csv.writer(text, lineterminator="\n")
                writer.writerow(CSV_HEADER)
                for monster in records:
                    writer.writerow(_row(monster))
    except (csv.Error, OSError, UnicodeError) as exc:
        raise ReportEncodingError(f"failed to encode report: {exc}") from exc
    return buffer.getvalue()
