import os
import logging
from datetime import datetime
from typing import Dict, List, Optional

import openpyxl
import pandas as pd
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
from openpyxl.utils import get_column_letter

from date_utils import iso_day
from fee_analytics import MonthlyAggregation
from models import last_payment, remaining_balance, total_paid

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
DUE_FILL = PatternFill(start_color="FFE6E6", end_color="FFE6E6", fill_type="solid")
FREE_FILL = PatternFill(start_color="E6F3FF", end_color="E6F3FF", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)


class ExcelHandler:
    def __init__(self, export_folder: str = 'exports'):
        self.logger = logging.getLogger(__name__)
        self.export_folder = export_folder
        os.makedirs(self.export_folder, exist_ok=True)

    def _timestamp(self) -> str:
        return datetime.now().strftime('%Y%m%d_%H%M%S')

    def _write_title(self, ws, title: str, last_column: int):
        ws.merge_cells(f"A1:{get_column_letter(last_column)}1")
        title_cell = ws.cell(row=1, column=1, value=title)
        title_cell.font = Font(size=14, bold=True)
        title_cell.alignment = Alignment(horizontal='center')
        ws.cell(row=2, column=1, value=f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        ws.cell(row=2, column=1).font = Font(size=10, italic=True)

    def _write_headers(self, ws, headers: List[str], row: int):
        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=row, column=col, value=header)
            cell.font = Font(bold=True, color="FFFFFF")
            cell.fill = HEADER_FILL
            cell.border = THIN_BORDER
            cell.alignment = Alignment(horizontal='center', vertical='center')

    def _autofit(self, ws, columns: int, last_row: int):
        for col_idx in range(1, columns + 1):
            max_length = 0
            column_letter = get_column_letter(col_idx)
            for row_idx in range(3, last_row + 1):
                value = ws.cell(row=row_idx, column=col_idx).value
                if value is not None:
                    max_length = max(max_length, len(str(value)))
            ws.column_dimensions[column_letter].width = min(max_length + 2, 50)  # Cap at 50 characters

    def export_student_ledger(self, students: List[Dict], institute: str) -> Optional[str]:
        """
        One row per student with fees owed, paid and remaining.
        Students with a balance still due are shaded.
        """
        try:
            wb = openpyxl.Workbook()
            ws = wb.active
            ws.title = "Student Ledger"

            headers = ['Seat', 'Name', 'Mobile', 'Course', 'Join Date',
                       'Total Fees', 'Paid', 'Remaining', 'Last Payment']
            self._write_title(ws, f"{institute} - Student Fee Ledger", len(headers))
            self._write_headers(ws, headers, row=4)

            row_num = 5
            ordered = sorted(students, key=lambda s: (s.get('seat_number') is None, s.get('seat_number') or 0))
            for student in ordered:
                last = last_payment(student)
                remaining = remaining_balance(student)
                row_data = [
                    student.get('seat_number'),
                    student.get('name'),
                    student.get('mobile'),
                    student.get('course_name'),
                    iso_day(student.get('join_date')),
                    student.get('total_fees', 0.0),
                    total_paid(student),
                    remaining,
                    iso_day(last['date']) if last else "No payments",
                ]
                for col, value in enumerate(row_data, 1):
                    cell = ws.cell(row=row_num, column=col, value=value)
                    cell.border = THIN_BORDER
                    if remaining > 0:
                        cell.fill = DUE_FILL
                row_num += 1

            ws.cell(row=row_num + 1, column=1, value="Summary:").font = Font(bold=True)
            ws.cell(row=row_num + 2, column=1, value=f"Students: {len(students)}")
            ws.cell(row=row_num + 3, column=1,
                    value=f"Total Collected: {sum(total_paid(s) for s in students)}")
            ws.cell(row=row_num + 4, column=1,
                    value=f"Total Outstanding: {sum(max(remaining_balance(s), 0) for s in students)}")

            self._autofit(ws, len(headers), row_num + 4)

            filepath = os.path.join(self.export_folder, f"students_export_{self._timestamp()}.xlsx")
            wb.save(filepath)
            self.logger.info(f"Exported student ledger to {filepath}")
            return filepath

        except Exception as e:
            self.logger.error(f"Error exporting student ledger: {str(e)}")
            return None

    def export_seat_plan(self, layout: Dict, institute: str) -> Optional[str]:
        """Every seat with its status and occupant, plus an occupancy summary."""
        try:
            wb = openpyxl.Workbook()
            ws = wb.active
            ws.title = "Seat Plan"

            headers = ['Seat Number', 'Status', 'Student']
            self._write_title(ws, f"{institute} - Seat Plan", len(headers))
            self._write_headers(ws, headers, row=4)

            row_num = 5
            for seat in layout['seats']:
                status = "Occupied" if seat['occupied'] else "Available"
                row_data = [seat['seat_number'], status, seat.get('student_name') or ""]
                for col, value in enumerate(row_data, 1):
                    cell = ws.cell(row=row_num, column=col, value=value)
                    cell.border = THIN_BORDER
                    cell.alignment = Alignment(horizontal='center', vertical='center')
                    if not seat['occupied']:
                        cell.fill = FREE_FILL
                row_num += 1

            total = len(layout['seats'])
            free = len(layout['available_seat_numbers'])
            occupied = total - free
            utilization = round(occupied / total * 100, 1) if total > 0 else 0

            ws.cell(row=row_num + 1, column=1, value="Summary:").font = Font(bold=True)
            ws.cell(row=row_num + 2, column=1, value=f"Total Seats: {total}")
            ws.cell(row=row_num + 3, column=1, value=f"Occupied Seats: {occupied}")
            ws.cell(row=row_num + 4, column=1, value=f"Empty Seats: {free}")
            ws.cell(row=row_num + 5, column=1, value=f"Utilization: {utilization}%")

            self._autofit(ws, len(headers), row_num + 5)

            filepath = os.path.join(self.export_folder, f"seat_plan_{self._timestamp()}.xlsx")
            wb.save(filepath)
            self.logger.info(f"Exported seat plan to {filepath}")
            return filepath

        except Exception as e:
            self.logger.error(f"Error exporting seat plan: {str(e)}")
            return None

    def export_monthly_summary(self, aggregation: MonthlyAggregation, institute: str) -> Optional[str]:
        """Month-by-month fees, expenses and profit."""
        try:
            df = pd.DataFrame(aggregation.summary_rows(),
                              columns=['month', 'fee', 'expense', 'profit', 'profit_percentage'])
            df.columns = ['Month', 'Fees Collected', 'Expenses', 'Profit', 'Profit %']

            filepath = os.path.join(self.export_folder, f"monthly_summary_{self._timestamp()}.xlsx")
            with pd.ExcelWriter(filepath, engine='openpyxl') as writer:
                df.to_excel(writer, index=False, sheet_name="Monthly Summary", startrow=3)
                ws = writer.sheets["Monthly Summary"]
                self._write_title(ws, f"{institute} - Monthly Summary", len(df.columns))
                self._write_headers(ws, list(df.columns), row=4)

                totals_row = len(df) + 6
                ws.cell(row=totals_row, column=1, value="TOTALS").font = Font(bold=True)
                ws.cell(row=totals_row, column=2, value=float(df['Fees Collected'].sum())).font = Font(bold=True)
                ws.cell(row=totals_row, column=3, value=float(df['Expenses'].sum())).font = Font(bold=True)
                ws.cell(row=totals_row, column=4, value=float(df['Profit'].sum())).font = Font(bold=True)

                for row_idx in range(5, len(df) + 5):
                    profit_cell = ws.cell(row=row_idx, column=4)
                    if profit_cell.value is not None and profit_cell.value < 0:
                        profit_cell.fill = DUE_FILL

                self._autofit(ws, len(df.columns), totals_row)

            self.logger.info(f"Exported monthly summary to {filepath}")
            return filepath

        except Exception as e:
            self.logger.error(f"Error exporting monthly summary: {str(e)}")
            return None
