from datetime import datetime
from io import BytesIO
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from geoattend.models import AttendanceLogRecord, SyncStatus

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (header, column width)
COLUMNS = (
    ("No.", 6),
    ("User ID", 15),
    ("Site", 25),
    ("Check-in", 22),
    ("Check-out", 22),
    ("Sync status", 14),
    ("Sync attempts", 14),
    ("Log ID", 40),
)

SYNC_STATUS_LABELS = {
    SyncStatus.PENDING: "Pending",
    SyncStatus.SYNCED: "Synced",
    SyncStatus.FAILED: "Failed",
}

_thin = Side(style="thin")
CELL_BORDER = Border(left=_thin, right=_thin, top=_thin, bottom=_thin)
HEADER_FONT = Font(bold=True, color="FFFFFF", size=12)
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")


def _timestamp(value):
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


def _row(index: int, log: AttendanceLogRecord):
    return (
        index,
        log.user_id,
        log.site_name,
        _timestamp(log.check_in_time),
        _timestamp(log.check_out_time),
        SYNC_STATUS_LABELS.get(log.sync_status, log.sync_status),
        log.sync_attempts,
        log.remote_log_id,
    )


def build_attendance_workbook(logs: Iterable[AttendanceLogRecord]) -> BytesIO:
    """Attendance sheet with a styled, frozen header row; returned rewound"""
    wb = Workbook()
    ws = wb.active
    ws.title = "Attendance"

    for col_num, (header, width) in enumerate(COLUMNS, 1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center")
        cell.border = CELL_BORDER
        ws.column_dimensions[get_column_letter(col_num)].width = width

    for index, log in enumerate(logs, 1):
        for col_num, value in enumerate(_row(index, log), 1):
            cell = ws.cell(row=index + 1, column=col_num, value=value)
            cell.border = CELL_BORDER
            cell.alignment = Alignment(vertical="center")

    ws.freeze_panes = "A2"

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def export_filename(start_date_str=None, end_date_str=None, now=None) -> str:
    now = now or datetime.now()
    if start_date_str and end_date_str:
        date_range = f"_{start_date_str}_to_{end_date_str}"
    elif start_date_str:
        date_range = f"_from_{start_date_str}"
    elif end_date_str:
        date_range = f"_until_{end_date_str}"
    else:
        date_range = ""
    return f"attendance{date_range}_{now.strftime('%Y%m%d_%H%M%S')}.xlsx"
