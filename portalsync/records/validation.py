"""Per-table validation of incoming records.

Validators return field errors, which reject a record, and warnings,
which are reported but do not block the write.
"""

from abc import ABC, abstractmethod
from numbers import Real
from typing import Any

from pydantic import BaseModel, Field

from portalsync.errors import FieldError
from portalsync.records.store import RecordStore

# Minimum passing grade (Kriteria Ketuntasan Minimal)
DEFAULT_KKM = 75


class ValidationResult(BaseModel):
    """Outcome of validating one record."""

    errors: list[FieldError] = Field(default_factory=list)
    warnings: list[FieldError] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


class RecordValidator(ABC):
    """Validates records for one table."""

    @abstractmethod
    async def validate(self, record: dict[str, Any], records: RecordStore) -> ValidationResult:
        pass


class GradeValidator(RecordValidator):
    """Validation for academic_records rows."""

    def __init__(self, kkm: float = DEFAULT_KKM, students_table: str = "students") -> None:
        self.kkm = kkm
        self.students_table = students_table

    async def validate(self, record: dict[str, Any], records: RecordStore) -> ValidationResult:
        result = ValidationResult()

        student_id = record.get("student_id")
        if not student_id or await records.get(self.students_table, str(student_id)) is None:
            result.errors.append(FieldError(field="student_id", message="Siswa tidak ditemukan"))

        score = record.get("score")
        if score is None:
            result.errors.append(FieldError(field="score", message="Nilai tidak boleh kosong"))
        elif not isinstance(score, Real) or isinstance(score, bool) or not 0 <= score <= 100:
            result.errors.append(FieldError(field="score", message="Nilai harus antara 0-100"))
        elif score < self.kkm:
            result.warnings.append(
                FieldError(field="score", message=f"Nilai di bawah KKM ({self.kkm:g})")
            )

        if not record.get("subject"):
            result.errors.append(
                FieldError(field="subject", message="Mata pelajaran tidak boleh kosong")
            )
        if not record.get("assessment_name"):
            result.errors.append(
                FieldError(field="assessment_name", message="Nama penilaian tidak boleh kosong")
            )
        return result


class ValidatorRegistry:
    """Maps table names to validators; unregistered tables accept anything."""

    def __init__(self, validators: dict[str, RecordValidator] | None = None) -> None:
        self._validators: dict[str, RecordValidator] = dict(validators or {})

    def register(self, table: str, validator: RecordValidator) -> None:
        self._validators[table] = validator

    async def validate(
        self, table: str, record: dict[str, Any], records: RecordStore
    ) -> ValidationResult:
        validator = self._validators.get(table)
        if validator is None:
            return ValidationResult()
        return await validator.validate(record, records)

    @classmethod
    def default(cls) -> "ValidatorRegistry":
        """Registry with the portal's built-in validators."""
        return cls({"academic_records": GradeValidator()})
