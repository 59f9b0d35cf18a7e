"""
Module: payroll_kernel.models.employee
Responsibility: Local snapshot of the employee master fields payroll depends on
    (bank identity for WPS, joining date for gratuity, notice period).
Architecture position: Kernel > Models.  Written only by EmployeeDirectory.sync,
    which mirrors the external employee master.
"""

from datetime import date

from sqlalchemy import Boolean, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.domain.dtos import EmployeeProfileInfo


class EmployeeProfile(TrackedBase):
    __tablename__ = "employee_profiles"

    employee_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    employee_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    joining_date: Mapped[date] = mapped_column(Date, nullable=False)
    basic_component_id: Mapped[str] = mapped_column(
        String(50), nullable=False, default="SC-BASIC"
    )
    iban: Mapped[str | None] = mapped_column(String(34), nullable=True)
    mohre_person_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    labor_card_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    wps_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notice_period_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    def to_dto(self) -> EmployeeProfileInfo:
        return EmployeeProfileInfo(
            employee_id=self.employee_id,
            employee_code=self.employee_code,
            name=self.name,
            joining_date=self.joining_date,
            basic_component_id=self.basic_component_id,
            iban=self.iban,
            mohre_person_id=self.mohre_person_id,
            labor_card_number=self.labor_card_number,
            wps_eligible=self.wps_eligible,
            notice_period_days=self.notice_period_days,
        )

    def apply(self, info: EmployeeProfileInfo) -> None:
        """Copy master fields from ``info`` onto this row."""
        self.employee_code = info.employee_code
        self.name = info.name
        self.joining_date = info.joining_date
        self.basic_component_id = info.basic_component_id
        self.iban = info.iban
        self.mohre_person_id = info.mohre_person_id
        self.labor_card_number = info.labor_card_number
        self.wps_eligible = info.wps_eligible
        self.notice_period_days = info.notice_period_days
