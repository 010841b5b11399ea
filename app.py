#!/usr/bin/env python3
"""TechTime TUI application."""

from __future__ import annotations

import logging
import os
from datetime import date, timedelta
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Footer, DataTable
from textual.coordinate import Coordinate
from rich.text import Text

import storage
from absence import (
    BankHolidaysAlreadyLogged,
    bank_holiday_hours,
    bank_holidays_in_month,
    bank_holidays_logged,
    log_absence,
    log_bank_holidays,
)
from aggregator import aggregate, total_stats
from engine import available_months, compute_month_stats
from errors import InvalidConfiguration, InvalidRange
from models import Bucket, DeductionTarget, Job, Settings
from monthly_reset import absence_status, check_and_reset_if_new_month, force_reset
from utils import add_months, get_week_start, month_name
from screens import AbsenceRequest, AbsenceScreen, ConfirmScreen, EditJobScreen, JobRecordsScreen, SettingsScreen
from widgets import DashboardSummary, EfficiencySummary, PeriodHeader, efficiency_text, format_hours

logger = logging.getLogger(__name__)

VIEW_MODES = ("dashboard", "day", "week", "month", "year")


def setup_logging(level: int = logging.INFO) -> Path:
    """Send log records to a file; the terminal belongs to the TUI."""
    if env_path := os.environ.get("TECHTIME_LOG"):
        log_path = Path(env_path)
    else:
        log_path = Path(__file__).parent / "data" / "techtime.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_path,
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    return log_path


class TechTimeDataTable(DataTable):
    """DataTable that hands left/right to the app for period navigation."""

    def on_key(self, event) -> None:
        if not hasattr(self.app, 'view_mode'):
            return

        if event.key == "left":
            self.app.action_prev_period()  # type: ignore[attr-defined]
            self.scroll_x = 0
            event.prevent_default()
            event.stop()
        elif event.key == "right":
            self.app.action_next_period()  # type: ignore[attr-defined]
            self.scroll_x = 0
            event.prevent_default()
            event.stop()


class TechTimeApp(App):
    """Main TechTime application."""

    CSS = """
    Screen {
        background: $surface;
    }

    #period-header {
        height: auto;
        background: $primary;
        color: $text;
        padding: 0 1;
        text-style: bold;
    }

    #dashboard-summary, #period-summary {
        height: auto;
        padding: 1 2;
        color: $text;
    }

    .table-container {
        height: 1fr;
        margin: 1 2;
    }

    .hidden {
        display: none;
    }

    DataTable {
        height: 100%;
    }

    DataTable > .datatable--cursor {
        background: $secondary;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("h", "dashboard", "Home"),
        Binding("w", "week_view", "Week"),
        Binding("m", "month_view", "Month"),
        Binding("y", "year_view", "Year"),
        Binding("t", "goto_today", "Today"),
        Binding("n", "new_job", "New job"),
        Binding("e", "edit_job", "Edit"),
        Binding("x", "delete_job", "Delete"),
        Binding("j", "job_records", "Jobs"),
        Binding("a", "absence", "Absence"),
        Binding("s", "settings", "Settings"),
        Binding("escape", "back", "Back"),
    ]

    def __init__(self):
        super().__init__()
        storage.init_db()

        self.view_mode = "dashboard"
        self.anchor = date.today()
        self.settings: Settings = storage.get_settings()
        self.jobs: list[Job] = storage.get_jobs()
        self.buckets: list[Bucket] = []

    # --- Period arithmetic ---

    def _shift_anchor(self, step: int) -> date:
        """Anchor moved one period forward (step=1) or back (step=-1)."""
        if self.view_mode == "day":
            return self.anchor + timedelta(days=step)
        if self.view_mode == "week":
            return self.anchor + timedelta(days=7 * step)
        if self.view_mode == "year":
            return date(self.anchor.year + step, 1, 1)
        year, month = add_months(self.anchor.year, self.anchor.month, step)
        return date(year, month, 1)

    def _period_title(self) -> tuple[str, str]:
        """Header title and navigation label for the current view."""
        anchor = self.anchor
        if self.view_mode == "day":
            return "DAY", anchor.strftime("%a %d %b %Y")
        if self.view_mode == "week":
            start = get_week_start(anchor, self.settings.week_start)
            end = start + timedelta(days=6)
            return "WEEK", f"{start.strftime('%d %b')} - {end.strftime('%d %b %Y')}"
        if self.view_mode == "year":
            return "YEAR", str(anchor.year)
        label = f"{month_name(anchor.month)} {anchor.year}"
        return ("DASHBOARD" if self.view_mode == "dashboard" else "MONTH"), label

    # --- Data ---

    def _reload_jobs(self) -> None:
        self.jobs = storage.get_jobs()

    def _check_monthly_reset(self, today: date | None = None) -> None:
        """Clear last month's absence once the calendar has moved on."""
        result = check_and_reset_if_new_month(self.settings, today)
        self.settings = result.settings
        if result.needs_save:
            storage.save_settings(self.settings)
        if result.was_reset:
            self.notify(result.message)

    def _aggregate(self, granularity: str, anchor: date | None = None) -> list[Bucket]:
        return aggregate(
            self.jobs,
            granularity,  # type: ignore[arg-type]
            anchor or self.anchor,
            self.settings.formula,
            self.settings.schedule,
            absence=self.settings.absence,
            week_start=self.settings.week_start,
        )

    def _month_stats(self):
        return compute_month_stats(
            self.jobs,
            self.anchor.year,
            self.anchor.month,
            self.settings.formula,
            self.settings.schedule,
            self.settings.target_hours,
            absence=self.settings.absence,
        )

    # --- Layout ---

    def compose(self) -> ComposeResult:
        yield PeriodHeader(id="period-header")
        # Dashboard widgets
        yield DashboardSummary(id="dashboard-summary")
        yield Container(TechTimeDataTable(id="dashboard-table"), id="dashboard-table-container", classes="table-container")
        # Day view: the jobs logged that day
        yield Container(TechTimeDataTable(id="day-table"), id="day-table-container", classes="table-container hidden")
        # Week and month views: one row per day
        yield Container(TechTimeDataTable(id="week-table"), id="week-table-container", classes="table-container hidden")
        yield Container(TechTimeDataTable(id="month-table"), id="month-table-container", classes="table-container hidden")
        # Year view: one row per month
        yield Container(TechTimeDataTable(id="year-table"), id="year-table-container", classes="table-container hidden")
        yield EfficiencySummary(id="period-summary", classes="hidden")
        yield Footer()

    def on_mount(self):
        self._setup_dashboard_table()
        self._setup_day_table()
        self._setup_days_table("#week-table")
        self._setup_days_table("#month-table")
        self._setup_year_table()
        self._check_monthly_reset()
        self._set_view_mode("dashboard")

    def _setup_dashboard_table(self):
        table = self.query_one("#dashboard-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Month", width=16)
        table.add_column("Jobs", width=6)

    def _setup_day_table(self):
        table = self.query_one("#day-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Time", width=6)
        table.add_column("WIP", width=10)
        table.add_column("Reg", width=10)
        table.add_column("AWs", width=5)
        table.add_column("Sold", width=7)
        table.add_column("Notes", width=36)

    def _setup_days_table(self, table_id: str):
        table = self.query_one(table_id, DataTable)
        table.cursor_type = "row"
        table.add_column("Day", width=4)
        table.add_column("Date", width=8)
        table.add_column("Jobs", width=5)
        table.add_column("AWs", width=5)
        table.add_column("Sold", width=8)
        table.add_column("Avail", width=8)
        table.add_column("Eff", width=6)

    def _setup_year_table(self):
        table = self.query_one("#year-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Month", width=12)
        table.add_column("Jobs", width=5)
        table.add_column("AWs", width=6)
        table.add_column("Sold", width=8)
        table.add_column("Absence", width=8)
        table.add_column("Avail", width=8)
        table.add_column("Eff", width=6)

    # --- Display ---

    def _refresh_display(self):
        try:
            header = self.query_one("#period-header", PeriodHeader)
            header.update_display(*self._period_title())

            if self.view_mode == "dashboard":
                self._refresh_dashboard()
            elif self.view_mode == "day":
                self._refresh_day_display()
            elif self.view_mode == "week":
                self._refresh_week_display()
            elif self.view_mode == "month":
                self._refresh_month_display()
            elif self.view_mode == "year":
                self._refresh_year_display()
        except (InvalidConfiguration, InvalidRange) as e:
            logger.error("Cannot calculate %s view: %s", self.view_mode, e)
            self.notify(str(e), severity="error")

    def _refresh_dashboard(self):
        stats = self._month_stats()
        self.query_one("#dashboard-summary", DashboardSummary).update_display(stats)

        table = self.query_one("#dashboard-table", DataTable)
        table.clear()
        for year, month, count in available_months(self.jobs):
            table.add_row(f"{month_name(month)} {year}", str(count), key=f"{year}-{month:02d}")

    def _refresh_day_display(self):
        bucket = self._aggregate("day")[0]
        aw_to_minutes = self.settings.formula.aw_to_minutes

        table = self.query_one("#day-table", DataTable)
        table.clear()
        for job in sorted(bucket.jobs, key=lambda j: j.date_created):
            table.add_row(
                job.date_created.strftime("%H:%M"),
                job.wip_number,
                job.vehicle_registration,
                str(job.aw_value),
                format_hours(job.sold_hours(aw_to_minutes)),
                (job.notes or "")[:36],
                key=job.id,
            )

        self.query_one("#period-summary", EfficiencySummary).update_display(bucket.stats)

    def _add_day_rows(self, table: DataTable, buckets: list[Bucket]):
        today = date.today()
        for bucket in buckets:
            d = bucket.range_start
            stats = bucket.stats
            # Dim future days and days off
            style = "dim" if d > today or stats.working_days == 0 else ""
            if d == today:
                style = "bold"
            has_available = stats.total_available_hours > 0
            table.add_row(
                Text(d.strftime("%a"), style=style),
                Text(d.strftime("%d %b"), style=style),
                Text(str(stats.total_jobs) if stats.total_jobs else "-", style=style),
                Text(str(stats.total_aws) if stats.total_aws else "-", style=style),
                Text(format_hours(stats.total_sold_hours) if stats.total_aws else "-", style=style),
                Text(format_hours(stats.total_available_hours) if has_available else "-", style=style),
                efficiency_text(stats.efficiency_percentage, stats.efficiency_band) if has_available else Text("-", style=style),
                key=d.isoformat(),
            )

    def _refresh_week_display(self):
        week = self._aggregate("week")[0]
        days = [self._aggregate("day", week.range_start + timedelta(days=i))[0] for i in range(7)]

        table = self.query_one("#week-table", DataTable)
        table.clear()
        self._add_day_rows(table, days)
        self._select_row(table, self.anchor.isoformat())

        self.query_one("#period-summary", EfficiencySummary).update_display(week.stats)

    def _refresh_month_display(self):
        buckets = self._aggregate("month")
        days, month_total = buckets[:-1], buckets[-1]

        table = self.query_one("#month-table", DataTable)
        table.clear()
        self._add_day_rows(table, days)
        self._select_row(table, self.anchor.isoformat())

        self.query_one("#period-summary", EfficiencySummary).update_display(month_total.stats)

    def _refresh_year_display(self):
        buckets = self._aggregate("year")
        today = date.today()

        table = self.query_one("#year-table", DataTable)
        table.clear()
        for bucket in buckets:
            start = bucket.range_start
            stats = bucket.stats
            style = "dim" if start > today else ""
            has_available = stats.total_available_hours > 0
            table.add_row(
                Text(start.strftime("%b %Y"), style=style),
                Text(str(stats.total_jobs) if stats.total_jobs else "-", style=style),
                Text(str(stats.total_aws) if stats.total_aws else "-", style=style),
                Text(format_hours(stats.total_sold_hours) if stats.total_aws else "-", style=style),
                Text(format_hours(stats.absence_hours) if stats.absence_hours else "-", style=style),
                Text(format_hours(stats.total_available_hours) if has_available else "-", style=style),
                efficiency_text(stats.efficiency_percentage, stats.efficiency_band) if has_available else Text("-", style=style),
                key=f"{start.year}-{start.month:02d}",
            )
        self._select_row(table, f"{self.anchor.year}-{self.anchor.month:02d}")

        summary = total_stats(buckets, self.settings.formula)
        self.query_one("#period-summary", EfficiencySummary).update_display(summary)

    def _select_row(self, table: DataTable, key: str):
        for row_idx, row_key in enumerate(table.rows.keys()):
            if str(row_key.value) == key:
                table.move_cursor(row=row_idx)
                break

    def _selected_key(self, table_id: str) -> str | None:
        table = self.query_one(table_id, DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(Coordinate(table.cursor_row, 0)).row_key
        return str(row_key.value) if row_key else None

    def _set_view_mode(self, mode: str):
        """Switch view and toggle widget visibility."""
        self.view_mode = mode

        visible = {
            "dashboard": ["#dashboard-summary", "#dashboard-table-container"],
            "day": ["#day-table-container", "#period-summary"],
            "week": ["#week-table-container", "#period-summary"],
            "month": ["#month-table-container", "#period-summary"],
            "year": ["#year-table-container", "#period-summary"],
        }
        all_widgets = {widget_id for ids in visible.values() for widget_id in ids}
        for widget_id in all_widgets:
            widget = self.query_one(widget_id)
            if widget_id in visible[mode]:
                widget.remove_class("hidden")
            else:
                widget.add_class("hidden")

        self.refresh_bindings()
        self._refresh_display()
        self.query_one(f"#{mode}-table", DataTable).focus()

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Check if an action is available based on current view mode."""
        if action == "dashboard":
            return self.view_mode != "dashboard"
        elif action == "week_view":
            return self.view_mode != "week"
        elif action == "month_view":
            return self.view_mode != "month"
        elif action == "year_view":
            return self.view_mode != "year"
        elif action in ("edit_job", "delete_job"):
            return True if self.view_mode == "day" else None
        elif action == "back":
            return True if self.view_mode != "dashboard" else None
        return True

    # --- Navigation ---

    def action_prev_period(self):
        self.anchor = self._shift_anchor(-1)
        self._refresh_display()

    def action_next_period(self):
        self.anchor = self._shift_anchor(1)
        self._refresh_display()

    def action_goto_today(self):
        self.anchor = date.today()
        self._check_monthly_reset()
        self._refresh_display()

    def action_dashboard(self):
        self._check_monthly_reset()
        self._set_view_mode("dashboard")

    def action_week_view(self):
        self._set_view_mode("week")

    def action_month_view(self):
        self._set_view_mode("month")

    def action_year_view(self):
        self._set_view_mode("year")

    def action_back(self):
        """Go up one level: day to week, week to month, month to year."""
        if self.view_mode == "day":
            self._set_view_mode("week")
        elif self.view_mode == "week":
            self._set_view_mode("month")
        elif self.view_mode == "month":
            self._set_view_mode("year")
        elif self.view_mode == "year":
            self.action_dashboard()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Drill down from the selected row."""
        table_id = event.control.id
        key = str(event.row_key.value) if event.row_key else None
        if not key:
            return

        if table_id in ("dashboard-table", "year-table"):
            year, month = key.split("-")
            self.anchor = date(int(year), int(month), 1)
            self._set_view_mode("month")
        elif table_id in ("week-table", "month-table"):
            self.anchor = date.fromisoformat(key)
            self._set_view_mode("day")
        elif table_id == "day-table":
            self.action_edit_job()

    # --- Jobs ---

    def action_new_job(self):
        job_date = self.anchor if self.view_mode == "day" else date.today()
        self.push_screen(
            EditJobScreen(job_date=job_date, aw_to_minutes=self.settings.formula.aw_to_minutes),
            self._on_job_saved,
        )

    def action_edit_job(self):
        if self.view_mode != "day":
            return
        job_id = self._selected_key("#day-table")
        job = storage.get_job(job_id) if job_id else None
        if not job:
            self.notify("No job selected", severity="warning")
            return
        self.push_screen(
            EditJobScreen(job, aw_to_minutes=self.settings.formula.aw_to_minutes),
            self._on_job_saved,
        )

    def _on_job_saved(self, result: Job | None) -> None:
        if result:
            storage.save_job(result)
            logger.info("Saved job %s (%d AWs)", result.wip_number, result.aw_value)
            self._reload_jobs()
            self._refresh_display()
            self.notify(f"Job {result.wip_number} saved")

    def action_delete_job(self):
        if self.view_mode != "day":
            return
        job_id = self._selected_key("#day-table")
        job = storage.get_job(job_id) if job_id else None
        if not job:
            self.notify("No job selected", severity="warning")
            return

        def do_delete(confirmed: bool | None) -> None:
            if confirmed and storage.delete_job(job.id):
                logger.info("Deleted job %s", job.wip_number)
                self._reload_jobs()
                self._refresh_display()
                self.notify(f"Job {job.wip_number} deleted")

        self.push_screen(
            ConfirmScreen(f"Delete job {job.wip_number} ({job.vehicle_registration})?"),
            do_delete,
        )

    def action_job_records(self):
        self.push_screen(
            JobRecordsScreen(aw_to_minutes=self.settings.formula.aw_to_minutes),
            self._on_job_records_closed,
        )

    def _on_job_records_closed(self, changed: bool | None) -> None:
        if changed:
            self._reload_jobs()
            self._refresh_display()

    # --- Absence ---

    def action_absence(self):
        self._check_monthly_reset()
        self.push_screen(
            AbsenceScreen(
                absence_status(self.settings),
                self.settings.formula,
                self.settings.absence.deduction_target,
                bank_holidays_logged(self.settings),
            ),
            self._on_absence_chosen,
        )

    def _save_settings(self, settings: Settings) -> None:
        self.settings = settings
        storage.save_settings(settings)
        self._refresh_display()

    def _on_absence_chosen(self, request: AbsenceRequest | None) -> None:
        if request is None:
            return
        if request.kind in ("full", "half"):
            self._save_settings(log_absence(
                self.settings,
                request.kind,  # type: ignore[arg-type]
                days=request.days,
                deduction_target=request.deduction_target,
            ))
            label = "full" if request.kind == "full" else "half"
            noun = "day" if request.days == 1 else "days"
            self.notify(
                f"{request.days} {label} {noun} absence logged "
                f"({format_hours(self.settings.absence.hours)} this month)"
            )
        elif request.kind == "bank":
            self._log_bank_holidays(request.deduction_target)
        elif request.kind == "reset":
            def do_reset(confirmed: bool | None) -> None:
                if confirmed:
                    self._save_settings(force_reset(self.settings))
                    self.notify("Absence cleared for this month")

            self.push_screen(ConfirmScreen("Clear all absence logged this month?"), do_reset)

    def _log_bank_holidays(self, deduction_target: DeductionTarget | None = None) -> None:
        """Offer to log this month's working-day bank holidays as absence."""
        today = date.today()
        if bank_holidays_logged(self.settings, today):
            self.notify("Bank holidays already logged this month", severity="warning")
            return

        schedule = self.settings.schedule
        holidays = bank_holidays_in_month(today.year, today.month, schedule)
        if not holidays:
            self.notify("No bank holidays on working days this month")
            return

        hours = bank_holiday_hours(today.year, today.month, schedule, self.settings.formula.hours_per_working_day)
        detail = ", ".join(f"{name} ({d.strftime('%d %b')})" for d, name in holidays.items())

        def do_log(confirmed: bool | None) -> None:
            if not confirmed:
                return
            try:
                settings = log_bank_holidays(self.settings, today, deduction_target)
            except BankHolidaysAlreadyLogged as e:
                self.notify(str(e), severity="warning")
                return
            self._save_settings(settings)
            self.notify(f"Logged {format_hours(hours)} for {len(holidays)} bank holiday(s)")

        self.push_screen(ConfirmScreen(f"Log {format_hours(hours)} bank holiday absence?", detail), do_log)

    # --- Settings ---

    def action_settings(self):
        self.push_screen(SettingsScreen(self.settings), self._on_settings_saved)

    def _on_settings_saved(self, result: Settings | None) -> None:
        if result:
            self._save_settings(result)
            self.notify("Settings saved")


def main():
    import sys
    args = sys.argv[1:]
    debug = "--debug" in args
    args = [arg for arg in args if arg != "--debug"]
    setup_logging(logging.DEBUG if debug else logging.INFO)

    if args and args[0] == "--db-info":
        from datetime import datetime
        db_path = storage.DB_PATH
        print(f"Database: {db_path}")
        if db_path.exists():
            mtime = datetime.fromtimestamp(db_path.stat().st_mtime)
            size = db_path.stat().st_size
            print(f"Modified: {mtime.strftime('%Y-%m-%d %H:%M:%S')}")
            print(f"Size: {size:,} bytes")
        else:
            print("Status: Does not exist (will be created on first run)")
        return

    if args and args[0] == "--import":
        from import_data import JobImportError, import_from_json
        if len(args) < 2:
            print("Usage: techtime --import FILE.json")
            sys.exit(2)
        try:
            result = import_from_json(Path(args[1]))
        except JobImportError as e:
            print(f"Import failed: {e}")
            sys.exit(1)
        print(f"Imported {result.imported} jobs")
        print(f"Skipped {result.skipped_duplicates} duplicates, {result.errors} invalid")
        return

    app = TechTimeApp()
    app.run()


if __name__ == "__main__":
    main()
