"""Modal screens for the TechTime application."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.coordinate import Coordinate
from textual.widgets import Button, DataTable, Input, Label
from textual.screen import ModalScreen

from absence import full_day_hours, half_day_hours
from errors import InvalidConfiguration
from import_data import normalise_registration
from models import DeductionTarget, FormulaConfig, Job, SaturdayRule, Settings, WorkSchedule
from monthly_reset import AbsenceStatus
from utils import DAY_NAMES, parse_hhmm
import storage


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no dialog for destructive or overwriting actions."""

    CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 50;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $warning;
    }

    #confirm-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
    }

    #confirm-buttons Button {
        width: 1fr;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("y", "confirm", "Yes"),
        Binding("n", "cancel", "No"),
    ]

    def __init__(self, message: str, detail: str | None = None):
        super().__init__()
        self.message = message
        self.detail = detail

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self.message)
            if self.detail:
                yield Label(self.detail, id="confirm-detail")
            with Horizontal(id="confirm-buttons"):
                yield Button("Yes (Y)", variant="warning", id="yes")
                yield Button("No (N)", variant="default", id="no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class EditJobScreen(ModalScreen[Job | None]):
    """Modal screen for logging a new job or editing an existing one."""

    CSS = """
    EditJobScreen {
        align: center middle;
    }

    #job-dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #job-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    .field-group {
        width: 1fr;
        height: auto;
        margin: 0 1 0 0;
    }

    .field-group:last-of-type {
        margin-right: 0;
    }

    .field-label {
        height: 1;
        margin-bottom: 0;
        color: $text-muted;
    }

    .field-row {
        width: 100%;
        height: auto;
        margin-bottom: 1;
    }

    .field-row Input {
        width: 100%;
    }

    #notes-group {
        width: 100%;
    }

    #job-time {
        height: 1;
        color: $text-muted;
    }

    #job-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    #job-buttons Button {
        width: auto;
        min-width: 12;
        margin: 0 2;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    # Field order for Enter key navigation
    FIELD_ORDER = ["wip-number", "vehicle-reg", "aws", "notes"]

    def __init__(self, job: Job | None = None, job_date: date | None = None, aw_to_minutes: Decimal = Decimal("5")):
        super().__init__()
        self.job = job  # None means logging a new job
        self.job_date = job.job_date if job else (job_date or date.today())
        self.aw_to_minutes = aw_to_minutes

    def compose(self) -> ComposeResult:
        title = "Edit Job" if self.job else "New Job"
        with Vertical(id="job-dialog"):
            yield Label(f"{title} - {self.job_date.strftime('%a %d %b %Y')}", id="job-title")

            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("WIP number", classes="field-label")
                    yield Input(
                        value=self.job.wip_number if self.job else "",
                        placeholder="12345",
                        id="wip-number",
                    )
                with Vertical(classes="field-group"):
                    yield Label("Registration", classes="field-label")
                    yield Input(
                        value=self.job.vehicle_registration if self.job else "",
                        placeholder="AB12CDE",
                        id="vehicle-reg",
                    )
                with Vertical(classes="field-group"):
                    yield Label("AWs", classes="field-label")
                    yield Input(
                        value=str(self.job.aw_value) if self.job else "",
                        placeholder="0",
                        id="aws",
                        type="integer",
                    )

            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group", id="notes-group"):
                    yield Label("Notes", classes="field-label")
                    yield Input(
                        value=(self.job.notes or "") if self.job else "",
                        placeholder="",
                        id="notes",
                    )

            yield Label(self._time_label(self.job.aw_value if self.job else 0), id="job-time")

            with Horizontal(id="job-buttons"):
                yield Button("Save", variant="primary", id="save")
                yield Button("Cancel", variant="default", id="cancel")

    def _time_label(self, aws: int) -> str:
        minutes = Decimal(aws) * self.aw_to_minutes
        return f"= {float(minutes):g} minutes ({float(minutes / 60):.2f}h)"

    def on_mount(self) -> None:
        """Focus the first field on mount."""
        self.query_one("#wip-number", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Move to next field on Enter, or save if on last field."""
        current_id = event.input.id
        if current_id in self.FIELD_ORDER:
            current_idx = self.FIELD_ORDER.index(current_id)
            if current_idx < len(self.FIELD_ORDER) - 1:
                next_id = self.FIELD_ORDER[current_idx + 1]
                self.query_one(f"#{next_id}", Input).focus()
            else:
                self._save_job()

    def on_input_changed(self, event: Input.Changed) -> None:
        """Keep the registration upper-case and the minutes preview current."""
        if event.input.id == "vehicle-reg":
            val = event.value.upper()
            if val != event.value:
                event.input.value = val
        elif event.input.id == "aws":
            aws = int(event.value) if event.value.strip().isdigit() else 0
            self.query_one("#job-time", Label).update(self._time_label(aws))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "save":
            self._save_job()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _save_job(self) -> None:
        wip_number = self.query_one("#wip-number", Input).value.strip()
        vehicle_reg = normalise_registration(self.query_one("#vehicle-reg", Input).value)
        aws_val = self.query_one("#aws", Input).value.strip()
        notes = self.query_one("#notes", Input).value.strip() or None

        if not wip_number:
            self.app.notify("WIP number is required", severity="error")
            return

        if not vehicle_reg:
            self.app.notify("Registration is required", severity="error")
            return

        try:
            aw_value = int(aws_val or "0")
        except ValueError:
            self.app.notify("AWs must be a whole number", severity="error")
            return
        if aw_value < 0:
            self.app.notify("AWs cannot be negative", severity="error")
            return

        if self.job:
            result = replace(
                self.job,
                wip_number=wip_number,
                vehicle_registration=vehicle_reg,
                aw_value=aw_value,
                notes=notes,
            )
        else:
            now = datetime.now()
            created = now if self.job_date == now.date() else datetime.combine(self.job_date, now.time())
            result = Job(
                wip_number=wip_number,
                vehicle_registration=vehicle_reg,
                aw_value=aw_value,
                date_created=created,
                notes=notes,
            )
        self.dismiss(result)


class JobRecordsScreen(ModalScreen[bool]):
    """Searchable list of every logged job.

    Dismisses with True when any job was changed so the caller can refresh.
    """

    CSS = """
    JobRecordsScreen {
        align: center middle;
    }

    #jobs-dialog {
        width: 90;
        height: 28;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #jobs-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    #jobs-search {
        width: 100%;
        margin-bottom: 1;
    }

    #jobs-table {
        height: 1fr;
    }

    #jobs-footer {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    #jobs-footer Button {
        width: auto;
        min-width: 10;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("e", "edit_job", "Edit"),
        Binding("d", "delete_job", "Delete"),
    ]

    def __init__(self, aw_to_minutes: Decimal = Decimal("5")):
        super().__init__()
        self.aw_to_minutes = aw_to_minutes
        self.changed = False

    def compose(self) -> ComposeResult:
        with Vertical(id="jobs-dialog"):
            yield Label("Job Records", id="jobs-title")
            yield Input(placeholder="Search WIP or registration...", id="jobs-search")
            yield DataTable(id="jobs-table")

            with Horizontal(id="jobs-footer"):
                yield Button("Edit [e]", id="btn-edit")
                yield Button("Delete [d]", id="btn-delete")
                yield Button("Close [Esc]", id="btn-close")

    def on_mount(self) -> None:
        """Set up the table and load data."""
        table = self.query_one("#jobs-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Date", width=12)
        table.add_column("WIP", width=10)
        table.add_column("Reg", width=10)
        table.add_column("AWs", width=5)
        table.add_column("Sold", width=7)
        table.add_column("Notes", width=30)
        self._refresh_table()
        self.query_one("#jobs-search", Input).focus()

    def _refresh_table(self, search: str = "") -> None:
        """Refresh the jobs table, newest first."""
        table = self.query_one("#jobs-table", DataTable)
        table.clear()

        if search:
            jobs = storage.search_jobs(search)
        else:
            jobs = list(reversed(storage.get_jobs()))

        for job in jobs:
            table.add_row(
                job.date_created.strftime("%d %b %H:%M"),
                job.wip_number,
                job.vehicle_registration,
                str(job.aw_value),
                f"{float(job.sold_hours(self.aw_to_minutes)):g}h",
                (job.notes or "")[:30],
                key=job.id,
            )

    def _search_text(self) -> str:
        return self.query_one("#jobs-search", Input).value

    def on_input_changed(self, event: Input.Changed) -> None:
        """Filter jobs as user types."""
        if event.input.id == "jobs-search":
            self._refresh_table(event.value)

    def on_key(self, event) -> None:
        """Move from the search box to the table on down/enter."""
        if event.key in ("down", "enter"):
            search_input = self.query_one("#jobs-search", Input)
            if search_input.has_focus:
                self.query_one("#jobs-table", DataTable).focus()
                event.prevent_default()
                event.stop()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.control.id == "jobs-table":
            self.action_edit_job()

    def _get_selected_job_id(self) -> str | None:
        table = self.query_one("#jobs-table", DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(Coordinate(table.cursor_row, 0)).row_key
        return str(row_key.value) if row_key else None

    def action_close(self) -> None:
        self.dismiss(self.changed)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "btn-edit":
            self.action_edit_job()
        elif button_id == "btn-delete":
            self.action_delete_job()
        elif button_id == "btn-close":
            self.action_close()

    def action_edit_job(self) -> None:
        job_id = self._get_selected_job_id()
        if not job_id:
            self.app.notify("No job selected", severity="warning")
            return

        job = storage.get_job(job_id)
        if job:
            self.app.push_screen(EditJobScreen(job, aw_to_minutes=self.aw_to_minutes), self._on_job_edited)

    def _on_job_edited(self, result: Job | None) -> None:
        if result:
            storage.save_job(result)
            self.changed = True
            self.app.notify(f"Job {result.wip_number} saved")
            self._refresh_table(self._search_text())

    def action_delete_job(self) -> None:
        job_id = self._get_selected_job_id()
        if not job_id:
            self.app.notify("No job selected", severity="warning")
            return

        job = storage.get_job(job_id)
        if job:
            self.app.push_screen(
                ConfirmScreen(f"Delete job {job.wip_number} ({job.vehicle_registration})?"),
                self._on_delete_confirmed,
            )

    def _on_delete_confirmed(self, confirmed: bool | None) -> None:
        if confirmed:
            job_id = self._get_selected_job_id()
            if job_id and storage.delete_job(job_id):
                self.changed = True
                self.app.notify("Job deleted")
                self._refresh_table(self._search_text())


@dataclass
class AbsenceRequest:
    """What the user picked on the absence screen."""

    kind: str  # "full", "half", "bank" or "reset"
    days: int = 1
    deduction_target: DeductionTarget = DeductionTarget.TOTAL_AVAILABLE_HOURS


def _parse_days(val: str) -> int:
    """Parse the absent days field; blank means one day."""
    val = val.strip()
    days = int(val) if val else 1
    if days < 1:
        raise ValueError("Absent days must be at least 1")
    return days


def _other_target(target: DeductionTarget) -> DeductionTarget:
    if target is DeductionTarget.TOTAL_AVAILABLE_HOURS:
        return DeductionTarget.MONTHLY_TARGET_HOURS
    return DeductionTarget.TOTAL_AVAILABLE_HOURS


class AbsenceScreen(ModalScreen[AbsenceRequest | None]):
    """Log absence for the current month.

    The user sets how many days were missed and which figure the hours
    reduce, sees the hours each choice would log, then picks full days,
    half days, bank holidays or a reset. Dismisses with an AbsenceRequest,
    or None if cancelled.
    """

    CSS = """
    AbsenceScreen {
        align: center middle;
    }

    #absence-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #absence-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    #absence-days-row {
        width: 100%;
        height: auto;
        margin-top: 1;
    }

    #absence-days-row Label {
        padding: 1 1 0 0;
    }

    #absence-days {
        width: 10;
    }

    #absence-preview {
        height: auto;
        margin-top: 1;
        color: $text-muted;
    }

    #absence-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
    }

    #absence-buttons Button {
        width: 100%;
        margin-bottom: 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("f", "choose('full')", "Full days"),
        Binding("h", "choose('half')", "Half days"),
        Binding("b", "choose('bank')", "Bank holidays"),
        Binding("t", "toggle_target", "Deduct from"),
        Binding("r", "choose('reset')", "Reset"),
    ]

    def __init__(
        self,
        status: AbsenceStatus,
        formula: FormulaConfig,
        deduction_target: DeductionTarget = DeductionTarget.TOTAL_AVAILABLE_HOURS,
        bank_holidays_logged: bool = False,
    ):
        super().__init__()
        self.status = status
        self.formula = formula
        self.deduction_target = deduction_target
        self.bank_holidays_logged = bank_holidays_logged

    def compose(self) -> ComposeResult:
        hours = self.status.absence_hours if self.status.is_current_month else Decimal("0")
        with Vertical(id="absence-dialog"):
            yield Label(f"Absence - {self.status.month_name} {self.status.current_year}", id="absence-title")
            yield Label(f"Logged this month: {float(hours):g}h", id="absence-logged")
            with Horizontal(id="absence-days-row"):
                yield Label("Absent days")
                yield Input(value="1", id="absence-days", type="integer")
            yield Label(self.preview_text(1), id="absence-preview")
            with Vertical(id="absence-buttons"):
                yield Button(self._target_button_label(), id="target")
                yield Button("Full days [f]", id="full")
                yield Button("Half days [h]", id="half")
                yield Button(
                    "Bank holidays [b]" + (" (logged)" if self.bank_holidays_logged else ""),
                    id="bank",
                    disabled=self.bank_holidays_logged,
                )
                yield Button("Reset month [r]", variant="warning", id="reset")
                yield Button("Cancel [Esc]", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#absence-days", Input).focus()

    def _target_button_label(self) -> str:
        return f"Deduct from: {self.deduction_target.label} [t]"

    def preview_text(self, days: int) -> str:
        """Hours a full or half day choice would log, and what they reduce."""
        full = full_day_hours(self.formula) * days
        half = half_day_hours(self.formula) * days
        noun = "day" if days == 1 else "days"
        return (
            f"{days} full {noun} = {float(full):g}h, {days} half {noun} = {float(half):g}h\n"
            f"Deducted from {self.deduction_target.label.lower()}"
        )

    def _refresh_preview(self) -> None:
        try:
            days = _parse_days(self.query_one("#absence-days", Input).value)
        except ValueError:
            self.query_one("#absence-preview", Label).update("Enter a whole number of days")
            return
        self.query_one("#absence-preview", Label).update(self.preview_text(days))

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "absence-days":
            self._refresh_preview()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "absence-days":
            self.action_choose("full")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "target":
            self.action_toggle_target()
        else:
            self.action_choose(event.button.id)

    def action_toggle_target(self) -> None:
        self.deduction_target = _other_target(self.deduction_target)
        self.query_one("#target", Button).label = self._target_button_label()
        self._refresh_preview()

    def action_choose(self, kind: str) -> None:
        if kind == "bank" and self.bank_holidays_logged:
            self.app.notify("Bank holidays already logged this month", severity="warning")
            return
        try:
            days = _parse_days(self.query_one("#absence-days", Input).value)
        except ValueError:
            self.app.notify("Absent days must be a whole number of at least 1", severity="error")
            return
        self.dismiss(AbsenceRequest(kind, days, self.deduction_target))

    def action_cancel(self) -> None:
        self.dismiss(None)


def _parse_work_days(val: str) -> frozenset[int]:
    """Parse 'Mon,Tue,Fri' (or weekday numbers) into weekday numbers."""
    days = set()
    for part in val.split(","):
        part = part.strip()
        if not part:
            continue
        if part.isdigit():
            days.add(int(part))
        elif part.title()[:3] in DAY_NAMES:
            days.add(DAY_NAMES.index(part.title()[:3]))
        else:
            raise InvalidConfiguration(f"Unknown work day {part!r}")
    return frozenset(days)


class SettingsScreen(ModalScreen[Settings | None]):
    """Edit formula, schedule and target settings."""

    CSS = """
    SettingsScreen {
        align: center middle;
    }

    #settings-dialog {
        width: 72;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #settings-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    .field-group {
        width: 1fr;
        height: auto;
        margin: 0 1 0 0;
    }

    .field-label {
        height: 1;
        color: $text-muted;
    }

    .field-row {
        width: 100%;
        height: auto;
        margin-bottom: 1;
    }

    #settings-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    #settings-buttons Button {
        width: auto;
        min-width: 12;
        margin: 0 2;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, settings: Settings):
        super().__init__()
        self.settings = settings

    def _field(self, label: str, value: str, field_id: str) -> ComposeResult:
        with Vertical(classes="field-group"):
            yield Label(label, classes="field-label")
            yield Input(value=value, id=field_id)

    def compose(self) -> ComposeResult:
        formula = self.settings.formula
        schedule = self.settings.schedule
        work_days = ",".join(DAY_NAMES[d] for d in sorted(schedule.work_days))
        reference = schedule.reference_saturday.isoformat() if schedule.reference_saturday else ""

        with Vertical(id="settings-dialog"):
            yield Label("Settings", id="settings-title")
            with Horizontal(classes="field-row"):
                yield from self._field("AW minutes", str(formula.aw_to_minutes), "aw-to-minutes")
                yield from self._field("Hours/day", str(formula.hours_per_working_day), "hours-per-day")
                yield from self._field("Target AW/h", str(formula.target_aws_per_hour), "target-aws")
                yield from self._field("Target hours", str(self.settings.target_hours), "target-hours")
            with Horizontal(classes="field-row"):
                yield from self._field("Green %", str(formula.efficiency_green_threshold), "green")
                yield from self._field("Yellow %", str(formula.efficiency_yellow_threshold), "yellow")
                yield from self._field("Sat every (0-6)", str(int(schedule.saturday_rule)), "saturday-rule")
                yield from self._field("Ref Saturday", reference, "reference-saturday")
            with Horizontal(classes="field-row"):
                yield from self._field("Work days", work_days, "work-days")
                yield from self._field("Start", schedule.work_start.strftime("%H:%M"), "work-start")
                yield from self._field("End", schedule.work_end.strftime("%H:%M"), "work-end")
                yield from self._field("Lunch", schedule.lunch_start.strftime("%H:%M"), "lunch-start")
                yield from self._field("Lunch end", schedule.lunch_end.strftime("%H:%M"), "lunch-end")
            with Horizontal(id="settings-buttons"):
                yield Button("Save", variant="primary", id="save")
                yield Button("Cancel", variant="default", id="cancel")

    def _value(self, field_id: str) -> str:
        return self.query_one(f"#{field_id}", Input).value.strip()

    def _time(self, field_id: str, label: str):
        parsed = parse_hhmm(self._value(field_id))
        if parsed is None:
            raise InvalidConfiguration(f"{label} must be a time like 08:00")
        return parsed

    def build_settings(self) -> Settings:
        """Read the form into a validated Settings.

        Raises:
            InvalidConfiguration: a value is unreadable or breaks an invariant.
        """
        try:
            formula = FormulaConfig(
                aw_to_minutes=Decimal(self._value("aw-to-minutes")),
                hours_per_working_day=Decimal(self._value("hours-per-day")),
                target_aws_per_hour=Decimal(self._value("target-aws")),
                efficiency_green_threshold=int(self._value("green")),
                efficiency_yellow_threshold=int(self._value("yellow")),
            )
            target_hours = Decimal(self._value("target-hours"))
            rule = SaturdayRule(int(self._value("saturday-rule")))
            reference_val = self._value("reference-saturday")
            reference = date.fromisoformat(reference_val) if reference_val else None
        except (InvalidOperation, ValueError) as e:
            raise InvalidConfiguration(f"Invalid setting: {e}") from e

        if target_hours < 0:
            raise InvalidConfiguration("Target hours cannot be negative")

        schedule = WorkSchedule(
            work_days=_parse_work_days(self._value("work-days")),
            work_start=self._time("work-start", "Start"),
            work_end=self._time("work-end", "End"),
            lunch_start=self._time("lunch-start", "Lunch"),
            lunch_end=self._time("lunch-end", "Lunch end"),
            saturday_rule=rule,
            reference_saturday=reference,
        )
        formula.validate()
        schedule.validate()
        return replace(self.settings, formula=formula, schedule=schedule, target_hours=target_hours)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "save":
            self._save()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _save(self) -> None:
        try:
            settings = self.build_settings()
        except InvalidConfiguration as e:
            self.app.notify(str(e), severity="error")
            return
        self.dismiss(settings)
