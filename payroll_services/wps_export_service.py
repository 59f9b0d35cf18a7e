"""
payroll_services.wps_export_service -- assembles the WPS salary file.

Reads stored payroll results and the employee master for a period and hands
them to the pure renderer in ``payroll_engines.wps``.  Read-only: nothing is
written and the file is returned, not transmitted.

Every WPS-eligible employee paid during the period (joined by its last day,
with a salary assignment overlapping it) must have a result.  Later joiners and
employees with no pay in the period are left out of the file.
"""

from sqlalchemy.orm import Session

from payroll_config.schema import OrganizationSettings
from payroll_engines.wps import SifEmployeeLine, SifHeader, render_sif, validate_sif
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import EmployeeProfileInfo, PayrollPeriodInfo
from payroll_kernel.exceptions import IncompleteComplianceDataError, WpsNotApplicableError
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.services.effective_dated_store import EffectiveDatedStore
from payroll_kernel.services.employee_directory import EmployeeDirectory
from payroll_kernel.services.period_service import PeriodService
from payroll_services.payroll_calculator import PayrollCalculator

logger = get_logger("services.wps_export")


class WpsExportService:
    def __init__(
        self,
        session: Session,
        settings: OrganizationSettings,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._clock = clock or SystemClock()
        self._periods = PeriodService(
            session, self._clock, organization_id=settings.organization_id
        )
        self._directory = EmployeeDirectory(session, self._clock)
        self._store = EffectiveDatedStore(session, self._clock, period_service=self._periods)
        self._results = PayrollCalculator(session, settings, self._clock)

    def export(self, period_code: str) -> str:
        """
        SIF text for ``period_code``.

        Raises:
            WpsNotApplicableError: The organization is outside WPS.
            IncompleteComplianceDataError: Any eligible employee or the
                organization is missing data; lists every issue.
        """
        with LogContext.bind(period_code=period_code):
            header, lines, issues = self._collect(period_code)
            issues.extend(validate_sif(header, lines))
            if issues:
                logger.warning(
                    "wps_export_rejected",
                    extra={"period_code": period_code, "issue_count": len(issues)},
                )
                raise IncompleteComplianceDataError(period_code, issues)

            payload = render_sif(header, lines)
            logger.info(
                "wps_file_generated",
                extra={"period_code": period_code, "employee_count": len(lines)},
            )
            return payload

    def validate(self, period_code: str) -> list[str]:
        """Every issue that would block ``export``; empty when it would succeed."""
        header, lines, issues = self._collect(period_code)
        return issues + validate_sif(header, lines)

    def _collect(
        self, period_code: str
    ) -> tuple[SifHeader, list[SifEmployeeLine], list[str]]:
        if not self._settings.wps_applicable:
            raise WpsNotApplicableError(self._settings.organization_id)

        period = self._periods.get_period(period_code)
        header = self._header(period)
        results = {r.employee_id: r for r in self._results.results_for_period(period_code)}

        lines: list[SifEmployeeLine] = []
        issues: list[str] = []
        for employee in self._directory.list_employees(wps_eligible_only=True):
            result = results.get(employee.employee_id)
            if result is None:
                if not self._paid_during(employee, period):
                    logger.info(
                        "wps_employee_outside_period",
                        extra={"employee_id": employee.employee_id, "period_code": period_code},
                    )
                    continue
                issues.append(
                    f"employee {employee.employee_code}: no payroll result for {period_code}"
                )
                continue
            lines.append(
                SifEmployeeLine(
                    employee_code=employee.employee_code,
                    name=employee.name,
                    iban=employee.iban,
                    person_id=employee.person_identifier,
                    days_worked=result.days_worked,
                    fixed_amount=result.fixed_amount,
                    variable_amount=result.variable_amount,
                    net=result.net,
                )
            )
        return header, lines, issues

    def _paid_during(self, employee: EmployeeProfileInfo, period: PayrollPeriodInfo) -> bool:
        """Joined by the period end and holds an assignment overlapping the period."""
        if employee.joining_date > period.end_date:
            return False
        return bool(
            self._store.assignments_in_range(
                employee.employee_id, period.start_date, period.end_date
            )
        )

    def _header(self, period: PayrollPeriodInfo) -> SifHeader:
        return SifHeader(
            period_code=period.period_code,
            establishment_number=self._settings.establishment_number,
            routing_code=self._settings.wps_routing_code,
            pay_month=period.pay_month,
            pay_year=period.pay_year,
            currency=self._settings.currency,
        )
