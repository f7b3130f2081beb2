"""Variable Resolver.

Maps project and party data to the flat name -> string table used to
substitute `{{name}}` placeholders. Resolution is pure: dates are derived
from an explicit reference date, and the same input always gives the
same table.
"""

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

from ..errors import MissingPartyFieldError, ValidationError

logger = logging.getLogger(__name__)

KOREAN_DIGITS = ("", "일", "이", "삼", "사", "오", "육", "칠", "팔", "구")
KOREAN_UNITS = ("", "만", "억", "조", "경")
ENGLISH_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

DEFAULT_DELIVERY_DAYS = 30
REQUIRED_PARTY_FIELDS = (("client", "name"), ("provider", "name"))
PAYMENT_STAGES = ("contract", "progress", "final")

PAYMENT_TIMINGS = {
    "KR": {"contract": "계약과 동시", "progress": "중간 납품 시", "final": "검수완료시"},
    "JP": {"contract": "契約締結時", "progress": "中間納品時", "final": "検収完了時"},
    "DE": {"contract": "bei Vertragsunterzeichnung", "progress": "bei Zwischenlieferung", "final": "nach Abnahme"},
    "FR": {"contract": "à la signature", "progress": "à la livraison intermédiaire", "final": "après réception"},
    "DEFAULT": {"contract": "upon signing", "progress": "upon interim delivery", "final": "upon acceptance"},
}


def korean_money(amount: int) -> str:
    """
    Spell an amount in Korean money words.

    Example: 3,000,000 -> "삼백만원", 0 -> "영원".
    """
    amount = int(amount)
    if amount == 0:
        return "영원"

    result = ""
    unit_index = 0
    while amount > 0:
        segment = amount % 10000
        if segment > 0:
            words = ""
            for value, unit in ((segment // 1000, "천"), ((segment % 1000) // 100, "백"), ((segment % 100) // 10, "십")):
                if value > 0:
                    words += KOREAN_DIGITS[value] + unit
            words += KOREAN_DIGITS[segment % 10]
            result = words + KOREAN_UNITS[unit_index] + result
        amount //= 10000
        unit_index += 1
    return result + "원"


def _grouped(amount: float, decimals: int) -> str:
    return f"{amount:,.{decimals}f}"


DATE_FORMATS: Dict[str, Callable[[date], str]] = {
    "KR": lambda d: f"{d.year}년 {d.month}월 {d.day}일",
    "US": lambda d: f"{ENGLISH_MONTHS[d.month - 1]} {d.day}, {d.year}",
    "JP": lambda d: f"{d.year}年{d.month}月{d.day}日",
    "DE": lambda d: f"{d.day:02d}.{d.month:02d}.{d.year}",
    "FR": lambda d: f"{d.day:02d}/{d.month:02d}/{d.year}",
    "DEFAULT": lambda d: d.isoformat(),
}

AMOUNT_FORMATS: Dict[str, Callable[[float], str]] = {
    "KR": lambda a: f"{_grouped(a, 0)}원",
    "US": lambda a: f"${_grouped(a, 2)}",
    "JP": lambda a: f"¥{_grouped(a, 0)}",
    "DE": lambda a: _grouped(a, 2).replace(",", "_").replace(".", ",").replace("_", ".") + " €",
    "FR": lambda a: _grouped(a, 2).replace(",", " ").replace(".", ",") + " €",
    "DEFAULT": lambda a: _grouped(a, 2),
}


def suggest_payment_schedule(amount: float) -> Dict[str, int]:
    """Default installment percentages for a contract amount."""
    if amount < 1_000_000:
        return {"contract_percentage": 0, "progress_percentage": 0, "final_percentage": 100}
    if amount < 5_000_000:
        return {"contract_percentage": 30, "progress_percentage": 0, "final_percentage": 70}
    return {"contract_percentage": 30, "progress_percentage": 40, "final_percentage": 30}


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


class VariableResolver:
    """
    Builds the variable table for one jurisdiction.

    Keys: clientName*, providerName*, clientCompany, clientEmail,
    clientPhone, providerCompany, providerEmail, providerPhone,
    contractAmount, contractAmountKorean, contractDuration, contractDate,
    deliveryDate, inspectionPeriod, serviceName, serviceDescription,
    serviceList, contractPayment, progressPayment, finalPayment, their
    `*Timing` keys, currentYear, currentMonth and currentDay
    (* = required). Optional values resolve to "" when absent.
    """

    def __init__(self, jurisdiction: str = "KR"):
        key = (jurisdiction or "DEFAULT").upper()
        self.jurisdiction = key if key in DATE_FORMATS else "DEFAULT"
        self._format_date = DATE_FORMATS[self.jurisdiction]
        self._format_amount = AMOUNT_FORMATS[self.jurisdiction]
        self._timings = PAYMENT_TIMINGS.get(self.jurisdiction, PAYMENT_TIMINGS["DEFAULT"])

    def format_date(self, value: date) -> str:
        return self._format_date(value)

    def format_amount(self, amount: float) -> str:
        return self._format_amount(amount)

    def format_amount_in_words(self, amount: float) -> str:
        """KR: `3,000,000원(삼백만원, 부가세별도)`; elsewhere the plain amount."""
        if self.jurisdiction != "KR":
            return self.format_amount(amount)
        return f"{self.format_amount(amount)}({korean_money(_round_half_up(amount))}, 부가세별도)"

    def resolve(
        self,
        project_data: Optional[Dict[str, Any]],
        parties: Optional[Dict[str, Dict[str, Any]]],
        reference_date: Optional[date] = None,
    ) -> Dict[str, str]:
        """
        Resolve the variable table.

        Args:
            project_data: `amount`, `duration`, `delivery_days`,
                `inspection_period`, `services` (list of `{name, description}`),
                `payment_terms` (`contract_percentage`, `progress_percentage`,
                `final_percentage` and `*_timing`) and `variables` (extra
                name -> value pairs).
            parties: `{"client": {...}, "provider": {...}}` with `name`,
                `company`, `email` and `phone`.
            reference_date: Contract date. Defaults to today.

        Raises:
            MissingPartyFieldError: client.name or provider.name is absent.
            ValidationError: A value is malformed or contains placeholder braces.
        """
        project = project_data or {}
        parties = parties or {}
        today = reference_date or date.today()

        for role, name in REQUIRED_PARTY_FIELDS:
            value = (parties.get(role) or {}).get(name)
            if value is None or not str(value).strip():
                raise MissingPartyFieldError(
                    f"Required party field '{role}.{name}' is missing",
                    field_name=f"{role}.{name}",
                )

        client = parties.get("client") or {}
        provider = parties.get("provider") or {}

        table: Dict[str, str] = {
            "clientName": _text(client.get("name")),
            "clientCompany": _text(client.get("company")),
            "clientEmail": _text(client.get("email")),
            "clientPhone": _text(client.get("phone")),
            "providerName": _text(provider.get("name")),
            "providerCompany": _text(provider.get("company")),
            "providerEmail": _text(provider.get("email")),
            "providerPhone": _text(provider.get("phone")),
            "contractDuration": _text(project.get("duration")),
            "inspectionPeriod": _text(project.get("inspection_period")),
            "contractDate": self.format_date(today),
            "currentYear": str(today.year),
            "currentMonth": str(today.month),
            "currentDay": str(today.day),
        }

        delivery_days = project.get("delivery_days", DEFAULT_DELIVERY_DAYS)
        if isinstance(delivery_days, bool) or not isinstance(delivery_days, int) or delivery_days < 0:
            raise ValidationError("delivery_days must be a non-negative integer", field_name="delivery_days")
        table["deliveryDate"] = self.format_date(today + timedelta(days=delivery_days))

        amount = _amount(project.get("amount"))
        table["contractAmount"] = self.format_amount(amount) if amount is not None else ""
        table["contractAmountKorean"] = self.format_amount_in_words(amount) if amount is not None else ""
        table.update(self._payments(amount, project.get("payment_terms") or {}))
        table.update(self._services(project.get("services") or []))

        for name, value in (project.get("variables") or {}).items():
            if name in table:
                logger.warning(f"Custom variable '{name}' overrides a resolved value")
            table[name] = _text(value)

        for name, value in table.items():
            if "{{" in value or "}}" in value:
                raise ValidationError(
                    f"Value of '{name}' contains placeholder braces", field_name=name
                )
        return table

    def _payments(self, amount: Optional[float], terms: Dict[str, Any]) -> Dict[str, str]:
        values = {}
        for stage in PAYMENT_STAGES:
            percentage = terms.get(f"{stage}_percentage") or 0
            if isinstance(percentage, bool) or not isinstance(percentage, (int, float)) or not 0 <= percentage <= 100:
                raise ValidationError(
                    f"{stage}_percentage must be between 0 and 100",
                    field_name=f"payment_terms.{stage}_percentage",
                )
            if amount is None or percentage == 0:
                values[f"{stage}Payment"] = ""
                values[f"{stage}PaymentTiming"] = ""
                continue
            values[f"{stage}Payment"] = self.format_amount_in_words(
                _round_half_up(amount * percentage / 100)
            )
            values[f"{stage}PaymentTiming"] = _text(terms.get(f"{stage}_timing")) or self._timings[stage]
        return values

    def _services(self, services: List[Dict[str, Any]]) -> Dict[str, str]:
        names = [_text(s.get("name") or s.get("serviceName")) for s in services]
        descriptions = [_text(s.get("description") or s.get("serviceDescription")) for s in services]

        if not services:
            service_name = ""
        elif len(services) == 1:
            service_name = names[0]
        elif self.jurisdiction == "KR":
            service_name = f"{len(services)}개 서비스 통합 패키지"
        else:
            service_name = f"Service package ({len(services)} services)"

        lines = [
            f"{i}. {name}: {desc}" if desc else f"{i}. {name}"
            for i, (name, desc) in enumerate(zip(names, descriptions), start=1)
        ]
        return {
            "serviceName": service_name,
            "serviceDescription": "\n".join(lines),
            "serviceList": "\n".join(f"- {name}" for name in names),
        }


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _amount(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError("amount must be a non-negative number", field_name="amount")
    return value
