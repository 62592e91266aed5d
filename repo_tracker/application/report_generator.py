from datetime import datetime, timezone
from html import escape
from typing import Iterable, List, Optional

from repo_tracker.domain.age import age_in_days, age_in_years
from repo_tracker.domain.models import RepositoryRecord

COLUMNS = ["Name", "Dependencies", "License", "Age (Years)", "Stars", "Issues", "Last Commit"]

ERROR = "Error"
UNKNOWN = "Unknown"

STARS_BADGE = "https://img.shields.io/github/stars/{path}?style=social"
ISSUES_BADGE = "https://img.shields.io/github/issues/{path}"


def format_timestamp(now: datetime) -> str:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _or_unknown(value: Optional[object]) -> str:
    return UNKNOWN if value is None else str(value)


def _name(record: RepositoryRecord) -> str:
    return record.display_name or record.repo_path


def _url(record: RepositoryRecord) -> str:
    return record.html_url or f"https://github.com/{record.repo_path}"


def _license(record: RepositoryRecord) -> str:
    return ERROR if record.is_error else (record.license or UNKNOWN)


def _age(record: RepositoryRecord, now: datetime) -> str:
    return ERROR if record.is_error else _or_unknown(age_in_years(record.created_at, now))


def _count(record: RepositoryRecord, value: Optional[int]) -> str:
    return ERROR if record.is_error else _or_unknown(value)


def _last_commit(record: RepositoryRecord, now: datetime) -> str:
    if record.is_error:
        return ERROR
    if record.last_commit_date is None:
        return UNKNOWN
    days = age_in_days(record.last_commit_date, now)
    return f"{record.last_commit_date:%Y-%m-%d} ({days} days ago)"


def render_html(records: Iterable[RepositoryRecord], now: datetime) -> str:
    """
    Renders the records as an HTML table followed by a "Last Updated At" line.
    Rows keep the order of ``records``.
    """
    lines: List[str] = ["<table>"]
    lines.append("<tr>" + "".join(f"<th>{escape(column)}</th>" for column in COLUMNS) + "</tr>")

    for record in records:
        cells = [
            f'<a href="{escape(_url(record))}">{escape(_name(record))}</a>',
            escape(record.dependencies),
            escape(_license(record)),
            _age(record, now),
            _count(record, record.stargazers_count),
            _count(record, record.issues_count),
            escape(_last_commit(record, now)),
        ]
        lines.append("<tr>" + "".join(f"<td>{cell}</td>" for cell in cells) + "</tr>")

    lines.append("</table>")
    lines.append(f"<p>Last Updated At: {format_timestamp(now)}</p>")
    return "\n".join(lines) + "\n"


def _md(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def render_markdown(records: Iterable[RepositoryRecord], now: datetime) -> str:
    """
    Renders the records as a Markdown pipe table followed by a "Last Updated At" line.
    Stars and Issues are shields.io badges for the repository.
    """
    lines: List[str] = [
        "| " + " | ".join(COLUMNS) + " |",
        "|" + "|".join("-" * (len(column) + 2) for column in COLUMNS) + "|",
    ]

    for record in records:
        if record.is_error:
            stars = issues = ERROR
        else:
            stars = f"![Stars]({STARS_BADGE.format(path=record.repo_path)})"
            issues = f"![Issues]({ISSUES_BADGE.format(path=record.repo_path)})"
        cells = [
            f"[{_md(_name(record))}]({_url(record)})",
            _md(record.dependencies),
            _md(_license(record)),
            _age(record, now),
            stars,
            issues,
            _last_commit(record, now),
        ]
        lines.append("| " + " | ".join(cells) + " |")

    lines.append("")
    lines.append(f"_Last Updated At: {format_timestamp(now)}_")
    return "\n".join(lines) + "\n"
