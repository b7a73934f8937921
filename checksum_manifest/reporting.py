import os
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .manifest.builder import BuildResult
from .models import EntryStatus, ReconciliationEntry, ReportSummary

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB", "PB"]

ANSI = {
    "green": "\033[32m",
    "red": "\033[31m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "bold": "\033[1m",
    "reset": "\033[0m",
}


def humanize_size(size_bytes: Optional[int]) -> str:
    """1536 -> '1.50 KB'. Plain bytes carry no decimals."""
    if size_bytes is None:
        return "unknown"
    value = float(size_bytes)
    unit = 0
    while value >= 1024 and unit < len(SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{size_bytes} B"
    # 1048575 B would otherwise print as 1024.00 KB
    if round(value, 2) >= 1024 and unit < len(SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.2f} {SIZE_UNITS[unit]}"


def humanize_delta(recorded: Optional[datetime], observed: Optional[datetime]) -> str:
    """Signed 'observed - recorded', e.g. '+1d 2h 0m 5s' or '-30s'."""
    if recorded is None or observed is None:
        return "unknown"
    seconds = int(round((observed - recorded).total_seconds()))
    if seconds == 0:
        return "0s"
    sign = "+" if seconds > 0 else "-"
    remaining = abs(seconds)
    days, remaining = divmod(remaining, 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes, secs = divmod(remaining, 60)

    parts = []
    for amount, suffix in ((days, "d"), (hours, "h"), (minutes, "m")):
        if amount or parts:
            parts.append(f"{amount}{suffix}")
    parts.append(f"{secs}s")
    return sign + " ".join(parts)


@dataclass(frozen=True)
class RenderConfig:
    use_color: bool = False
    verbose: bool = False

    @classmethod
    def detect(cls, stream, verbose: bool = False) -> "RenderConfig":
        """Decides color support once, from the stream the report goes to."""
        is_tty = hasattr(stream, "isatty") and stream.isatty()
        use_color = (
            is_tty
            and "NO_COLOR" not in os.environ
            and os.environ.get("TERM") != "dumb"
        )
        return cls(use_color=use_color, verbose=verbose)


class ReportRenderer:
    def __init__(self, config: RenderConfig):
        self.config = config

    def render(self, summary: ReportSummary, ignore_missing: bool = False) -> str:
        lines: List[str] = []

        sections = [
            ("Invalid", "red", [e for e in summary.ordered() if e.is_invalid]),
            ("Missing", "yellow", summary.with_status(EntryStatus.MISSING)),
        ]
        if summary.untracked_reported:
            sections.append(("Untracked", "cyan", summary.with_status(EntryStatus.UNTRACKED)))
        if self.config.verbose:
            sections.append(("Verified", "green", [e for e in summary.ordered() if e.is_valid]))

        for title, color, entries in sections:
            if not entries:
                continue
            lines.append(self._color(f"{title} ({len(entries)}):", color, bold=True))
            for entry in entries:
                lines.append(f"  {entry.path}")
                if self.config.verbose:
                    lines.extend(self._detail(entry))
            lines.append("")

        lines.append(self.tally(summary))
        lines.append(self.banner(summary, ignore_missing))
        return "\n".join(lines)

    def tally(self, summary: ReportSummary) -> str:
        text = (
            f"Verified: {summary.verified}  "
            f"Invalid: {summary.invalid}  "
            f"Missing: {summary.missing}"
        )
        if summary.untracked_reported:
            text += f"  Untracked: {summary.untracked}"
        return text

    def banner(self, summary: ReportSummary, ignore_missing: bool = False) -> str:
        if not summary.passed(ignore_missing):
            return self._color("FAILED", "red", bold=True)
        text = "PASSED"
        if ignore_missing and summary.missing:
            text += " (missing files ignored)"
        return self._color(text, "green", bold=True)

    def render_manifest_summary(self, result: BuildResult) -> str:
        where = str(result.output_path) if result.output_path else "not written"
        return (
            f"{result.manifest.total_files} files hashed with "
            f"{result.manifest.algorithm.value} -> {where}"
        )

    def _detail(self, entry: ReconciliationEntry) -> List[str]:
        if entry.status is EntryStatus.MISSING:
            return [
                f"      recorded: {entry.hash}",
                f"      size:     {humanize_size(entry.size)}",
            ]
        if entry.status is EntryStatus.UNTRACKED:
            return [f"      size:     {humanize_size(entry.verify_size)}"]

        lines = [f"      recorded: {entry.hash}"]
        if not entry.verified:
            lines.append(f"      actual:   {entry.verify_hash}")
        size = humanize_size(entry.verify_size)
        if entry.size is not None and entry.size != entry.verify_size:
            size = f"{humanize_size(entry.size)} -> {size}"
        lines.append(f"      size:     {size}")
        lines.append(f"      modified: {humanize_delta(entry.date, entry.verify_date)}")
        return lines

    def _color(self, text: str, color: str, bold: bool = False) -> str:
        if not self.config.use_color:
            return text
        prefix = ANSI[color] + (ANSI["bold"] if bold else "")
        return f"{prefix}{text}{ANSI['reset']}"
