"""Value formatting and small terminal visualisations."""

import re
from typing import Iterator

from rich.text import Text

SPARK_CHARS = "▁▂▃▄▅▆▇█"


def format_currency(value: float | None) -> str:
    """USD with cents, e.g. $1,234.50. Missing or zero renders $0.00."""
    if not value:
        return "$0.00"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_number(value: float | None) -> str:
    """Grouped number, e.g. 1,234,567."""
    if not value:
        return "0"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_percent(value: float | None) -> str:
    """A value already in percent units, e.g. 3.2035 -> 3.20%."""
    if value is None:
        return "-"
    return f"{value:,.2f}%"


def format_signed_percent(value: float | None) -> str:
    if value is None:
        return "-"
    sign = "+" if value > 0 else ""
    return f"{sign}{format_percent(value)}"


def format_large_currency(value: float) -> str:
    """Compact USD for axes and cards."""
    if value >= 1e12:
        return f"${value / 1e12:.2f}T"
    elif value >= 1e9:
        return f"${value / 1e9:.1f}B"
    elif value >= 1e6:
        return f"${value / 1e6:.0f}M"
    else:
        return f"${value:,.0f}"


def title_case(text: str) -> str:
    """"ORACLE CORP" -> "Oracle Corp"."""
    return re.sub(r"\w\S*", lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), text)


def fund_slug(company_name: str) -> str:
    """Route segment for a fund page (spaces become dashes)."""
    return company_name.replace(" ", "-")


def sparkline(values: list[float], width: int = 60) -> str:
    """Render a series as a one-line block chart, resampled to ``width``."""
    if not values:
        return ""
    if len(values) > width:
        step = len(values) / width
        values = [values[int(i * step)] for i in range(width - 1)] + [values[-1]]

    lo, hi = min(values), max(values)
    span = hi - lo
    if span == 0:
        return SPARK_CHARS[len(SPARK_CHARS) // 2] * len(values)
    top = len(SPARK_CHARS) - 1
    return "".join(SPARK_CHARS[round((v - lo) / span * top)] for v in values)


def change_style(value: float | None) -> str:
    if value is None:
        return "dim"
    return "green" if value >= 0 else "red"


class SentimentRing:
    """Gauge of buyers vs. sellers for one symbol.

    Renders as a fixed-width arc of filled/empty segments followed by the
    percentage. ``frames()`` yields the gauge filling up from empty to its
    value, for the animation played when the watchlist first appears.
    """

    def __init__(self, ratio: float | None, segments: int = 10) -> None:
        self.ratio = ratio
        self.segments = segments

    def frames(self, steps: int = 10) -> Iterator["SentimentRing"]:
        if self.ratio is None:
            for _ in range(steps + 1):
                yield self
            return
        target = self.ratio
        for i in range(steps + 1):
            yield SentimentRing(target * i / steps, self.segments)

    def __rich__(self) -> Text:
        if self.ratio is None:
            return Text("-", style="dim")
        filled = round(self.ratio * self.segments)
        style = "green" if self.ratio >= 0.5 else "red"
        text = Text()
        text.append("●" * filled, style=style)
        text.append("○" * (self.segments - filled), style="grey35")
        text.append(f" {self.ratio * 100:.0f}%", style=style)
        return text
