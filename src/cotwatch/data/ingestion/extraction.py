"""Report extraction: locate the report text file inside a yearly archive."""

from __future__ import annotations

import zipfile
from io import BytesIO

import structlog

from cotwatch.data.ingestion.base import IngestionError

logger = structlog.get_logger()

# Known names of the report file inside the archive, matched on suffix.
REPORT_FILE_SUFFIXES: tuple[str, ...] = ("f_year.txt", "FUT_DISAGG.txt")


class ExtractionError(IngestionError):
    """The archive is unreadable or holds no recognised report file."""


def _is_report_file(name: str) -> bool:
    lowered = name.lower()
    return any(lowered.endswith(suffix.lower()) for suffix in REPORT_FILE_SUFFIXES)


def extract(archive: bytes) -> str:
    """Return the decoded text of the first report file in ``archive``.

    Parameters
    ----------
    archive : bytes
        Raw zip archive as returned by a report source.

    Returns
    -------
    str
        The report text (comma-separated, with a header row).

    Raises
    ------
    ExtractionError
        If the bytes are not a zip archive or no entry has a known suffix.
    """
    try:
        with zipfile.ZipFile(BytesIO(archive)) as zf:
            names = zf.namelist()
            match = next((n for n in names if _is_report_file(n)), None)
            if match is None:
                logger.error("report_file_missing", entries=names)
                raise ExtractionError(
                    f"No report file ending in {REPORT_FILE_SUFFIXES} among {names}"
                )
            raw = zf.read(match)
    except zipfile.BadZipFile as e:
        logger.error("archive_unreadable", error=str(e))
        raise ExtractionError(f"Archive is not a readable zip file: {e}") from e

    logger.info("report_extracted", entry=match, size_bytes=len(raw))
    return raw.decode("utf-8", errors="replace")
