"""CSV export of the intake history."""
from __future__ import annotations

import csv
import io
from typing import Iterable, TextIO

from .const import CSV_COLUMNS
from .models import Medicine, MedicineIntake


def _rows(intakes: Iterable[MedicineIntake], medicines: Iterable[Medicine]):
    names = {medicine.id: medicine.name for medicine in medicines}
    for intake in intakes:
        yield {
            "id": intake.id,
            "medicineId": intake.medicine_id,
            "medicineName": names.get(intake.medicine_id, ""),
            "date": intake.date.isoformat(),
            "scheduledTime": intake.scheduled_time,
            "actualTime": intake.actual_time.isoformat() if intake.actual_time else "",
            "status": intake.status,
            "notes": intake.notes or "",
        }


def export_intakes_csv(
    intakes: Iterable[MedicineIntake], medicines: Iterable[Medicine], fh: TextIO
) -> None:
    writer = csv.DictWriter(fh, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for row in _rows(intakes, medicines):
        writer.writerow(row)


def intakes_to_csv(intakes: Iterable[MedicineIntake], medicines: Iterable[Medicine]) -> str:
    buffer = io.StringIO()
    export_intakes_csv(intakes, medicines, buffer)
    return buffer.getvalue()
