"""Run statistics and the HTML summary sent with notifications."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import IntEnum


@dataclass
class BackupRevision:
    """Statistics gathered from one backup to a storage."""

    storage: str = ""
    chunk_total_count: str = ""
    chunk_total_size: str = ""
    files_total_count: str = ""
    files_total_size: str = ""
    files_new_count: str = ""
    files_new_size: str = ""
    chunk_new_count: str = ""
    chunk_new_size: str = ""
    chunk_new_uploaded: str = ""
    duration: str = ""


@dataclass
class CopyRevision:
    """Statistics gathered from one copy between storages."""

    storage_from: str = ""
    storage_to: str = ""
    chunk_total_count: str = ""
    chunk_copy_count: str = ""
    chunk_skip_count: str = ""
    duration: str = ""


@dataclass
class RunReport:
    """Statistics collected over a whole run."""

    backups: list[BackupRevision] = field(default_factory=list)
    copies: list[CopyRevision] = field(default_factory=list)


class ReportStateError(Exception):
    """HTML report pieces were requested in an invalid order."""


class _TableContext(IntEnum):
    NONE = 0
    BACKUP = 1
    COPY = 2


_HTML_ESCAPES = str.maketrans(
    {"&": "&amp;", "'": "&#39;", "<": "&lt;", ">": "&gt;", '"': "&#34;"}
)


def _escape(text: str) -> str:
    return text.translate(_HTML_ESCAPES)


class HtmlReportBuilder:
    """Produces the lines of the HTML report, checking that tables nest properly."""

    def __init__(self) -> None:
        self.context = _TableContext.NONE

    def _require(self, valid: bool) -> None:
        if not valid:
            raise ReportStateError(f"Invalid HTML Table Context: {int(self.context)}")

    def header(self, config_name: str) -> list[str]:
        """Return the document head and title; resets the table state."""
        self.context = _TableContext.NONE
        return [
            "<!DOCTYPE html>",
            "<html>",
            "<head>",
            "<style>",
            "table {",
            "    font-family: arial, sans-serif;",
            "    border-collapse: collapse;",
            "    width: 100%;",
            "}",
            "td, th {",
            "    border: 1px solid #dddddd;",
            "    text-align: right;",
            "    padding: 8px;",
            "}",
            "",
            "tr:nth-child(even) {",
            "    background-color: #dddddd;",
            "}",
            "</style>",
            "</head>",
            "<body>",
            "",
            f"<h1>Statistics for configuration: {config_name}</h1>",
        ]

    def backup_table_header(self) -> list[str]:
        """Open the backup summary table."""
        self._require(self.context == _TableContext.NONE)
        self.context = _TableContext.BACKUP
        return [
            "",
            "<h3>Backup Summary:</h3>",
            "<table>",
            "  <tr>",
            '    <th style="text-align: left">Storage</th>',
            "    <th>Duration</th>",
            "    <th>Total Chunks</th>",
            "\t <th>Total Used</th>",
            "    <th>New Files</th>",
            "    <th>New File Size</th>",
            "\t <th>New Chunks</th>",
            "\t <th>New Uploaded</th>",
            "  </tr>",
        ]

    def backup_row(self, data: BackupRevision) -> list[str]:
        """Return one row of the backup table."""
        self._require(self.context == _TableContext.BACKUP)
        return [
            "  <tr>",
            '    <td style="text-align: left">', data.storage, "</td>",
            "    <td>", data.duration, "</td>",
            "    <td>", data.chunk_total_count, "</td>",
            "    <td>", data.chunk_total_size, "</td>",
            "    <td>", data.files_new_count, "</td>",
            "    <td>", data.files_new_size, "</td>",
            "    <td>", data.chunk_new_count, "</td>",
            "    <td>", data.chunk_new_uploaded, "</td>",
            "  </tr>",
        ]

    def copy_table_header(self) -> list[str]:
        """Open the copy summary table."""
        self._require(self.context == _TableContext.NONE)
        self.context = _TableContext.COPY
        return [
            "",
            "<h3>Copy Summary:</h3>",
            "<table>",
            "  <tr>",
            '    <th style="text-align: left">From Storage</th>',
            '    <th style="text-align: left">To Storage</th>',
            "    <th>Duration</th>",
            "    <th>Total Chunks</th>",
            "\t <th>Chunks Skipped</th>",
            "\t <th>Chunks Copied</th>",
            "  </tr>",
        ]

    def copy_row(self, data: CopyRevision) -> list[str]:
        """Return one row of the copy table."""
        self._require(self.context == _TableContext.COPY)
        return [
            "  <tr>",
            '    <td style="text-align: left">', data.storage_from, "</td>",
            '    <td style="text-align: left">', data.storage_to, "</td>",
            "    <td>", data.duration, "</td>",
            "    <td>", data.chunk_total_count, "</td>",
            "    <td>", data.chunk_skip_count, "</td>",
            "    <td>", data.chunk_copy_count, "</td>",
            "  </tr>",
        ]

    def table_end(self) -> list[str]:
        """Close the open table."""
        self._require(self.context != _TableContext.NONE)
        self.context = _TableContext.NONE
        return ["</table>"]

    def trailer(self, mail_body: Iterable[str]) -> list[str]:
        """Return the log text section and the end of the document.

        Special characters are escaped and spaces kept as ``&nbsp;``.
        """
        lines = [_escape(line).replace(" ", "&nbsp;") for line in mail_body]
        return [
            "</table>",
            "<br><br><br><b>Log Text:</b><br><br>",
            "<br>\n".join(lines),
            "</body>",
            "</html>",
        ]


def generate_html_body(config_name: str, report: RunReport, mail_body: Iterable[str]) -> list[str]:
    """Return the lines of the full HTML report for a run."""
    builder = HtmlReportBuilder()
    body = builder.header(config_name)

    if report.backups:
        body += builder.backup_table_header()
        for backup in report.backups:
            body += builder.backup_row(backup)
        body += builder.table_end()

    if report.copies:
        body += builder.copy_table_header()
        for copy in report.copies:
            body += builder.copy_row(copy)
        body += builder.table_end()

    body += builder.trailer(mail_body)
    return body