"""Custom widgets for the TechTime application."""

from __future__ import annotations

from decimal import Decimal

from textual.widgets import Static
from rich.text import Text

from models import EfficiencyBand, MonthlyStats, PeriodStats


def format_hours(hours: Decimal) -> str:
    return f"{float(hours):g}h"


def efficiency_text(percentage: int, band: EfficiencyBand, with_label: bool = False) -> Text:
    """Efficiency percentage coloured by its band."""
    label = f"{percentage}%"
    if with_label:
        label = f"{label}  {band.label}"
    return Text(label, style=f"bold {band.color}")


class PeriodHeader(Static):
    """Shows the period title on left and navigation on right."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.left_arrow_pos = 0
        self.right_arrow_pos = 0

    def update_display(self, title: str, nav: str):
        nav_text = f"◄ {nav} ►"

        # Right edge matches the summary column
        target_end_col = 60
        nav_start = max(target_end_col - len(nav_text), len(title) + 2)

        # Store positions for click detection
        self.left_arrow_pos = nav_start
        self.right_arrow_pos = nav_start + len(nav_text) - 1

        text = Text()
        text.append(title, style="bold")
        text.append(" " * (nav_start - len(title)))
        text.append(nav_text, style="bold")
        self.update(text)

    def on_click(self, event) -> None:
        """Handle clicks on the arrows for period navigation."""
        click_col = event.x
        if self.left_arrow_pos <= click_col < self.left_arrow_pos + 2:
            self.app.action_prev_period()  # type: ignore[attr-defined]
        elif self.right_arrow_pos <= click_col < self.right_arrow_pos + 2:
            self.app.action_next_period()  # type: ignore[attr-defined]


class EfficiencySummary(Static):
    """Shows jobs, sold hours, available hours and efficiency for a period."""

    def update_display(self, stats: PeriodStats):
        text = Text()
        text.append(f"                          Jobs  {stats.total_jobs:>8}\n")
        text.append(f"                           AWs  {stats.total_aws:>8}\n")
        text.append(f"                    Sold hours  {format_hours(stats.total_sold_hours):>8}\n")
        text.append(f"                  Working days  {stats.working_days:>8}\n")

        # Absence - dim if zero
        absence_line = f"                       Absence  {format_hours(stats.absence_hours):>8}\n"
        text.append(absence_line, style="dim" if stats.absence_hours == 0 else "")

        text.append(f"               Available hours  {format_hours(stats.total_available_hours):>8}\n")
        text.append("                    Efficiency  ")
        text.append_text(efficiency_text(stats.efficiency_percentage, stats.efficiency_band, with_label=True))
        self.update(text)


class DashboardSummary(Static):
    """Month-to-date dashboard: efficiency plus target progress."""

    def update_display(self, stats: MonthlyStats):
        text = Text()
        text.append(f"As of {stats.as_of.strftime('%a %d %b %Y')}\n\n", style="dim")
        text.append("Efficiency  ", style="bold")
        text.append_text(efficiency_text(stats.efficiency_percentage, stats.efficiency_band, with_label=True))
        text.append("\n\n")

        text.append(f"                          Jobs  {stats.total_jobs:>8}\n")
        text.append(f"                           AWs  {stats.total_aws:>8}\n")
        text.append(f"                       Minutes  {float(stats.total_minutes):>8g}\n")
        text.append(f"                    Sold hours  {format_hours(stats.total_sold_hours):>8}\n")
        text.append(f"             AWs per sold hour  {float(stats.average_aws_per_hour):>8g}\n")
        text.append(f"                  Working days  {stats.working_days:>8}\n")
        text.append(f"               Available (raw)  {format_hours(stats.raw_available_hours):>8}\n")

        absence_line = f"                       Absence  {format_hours(stats.absence_hours):>8}\n"
        text.append(absence_line, style="dim" if stats.absence_hours == 0 else "")

        text.append(f"               Available hours  {format_hours(stats.total_available_hours):>8}\n")
        text.append(f"                  Target hours  {format_hours(stats.target_hours):>8}\n")
        text.append(f"                     Remaining  {format_hours(stats.remaining_target_hours):>8}\n")
        text.append(f"                   Utilization  {float(stats.utilization_percentage):>7g}%\n")
        text.append(f"                  Expected AWs  {float(stats.expected_aws):>8g}")
        self.update(text)
