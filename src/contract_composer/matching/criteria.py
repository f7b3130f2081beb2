"""Derivation of template-matching criteria from a quote.

A quote carries its service line items, amount, client data and
metadata (duration). From these the service type, industry and project
complexity are derived with keyword tables and a point score.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import ValidationError
from ..models.enums import Complexity
from ..models.template import GENERAL

DEFAULT_CONTRACT_CATEGORY_FOR_QUOTES = "용역/프로젝트"
DEFAULT_DURATION_DAYS = 30

SERVICE_TYPE_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("development", ("개발", "웹사이트", "앱", "쇼피파이", "shopify", "코딩", "프로그래밍", "api")),
    ("design", ("디자인", "로고", "브랜딩", "ui", "ux", "그래픽", "일러스트", "포토샵")),
    ("marketing", ("마케팅", "광고", "sns", "소셜", "인스타그램", "페이스북", "블로그", "seo")),
    ("content", ("콘텐츠", "글쓰기", "번역", "영상", "촬영", "편집", "카피")),
    ("consulting", ("컨설팅", "자문", "분석", "전략", "기획", "연구", "조사")),
    ("education", ("교육", "강의", "수업", "트레이닝", "워크샵", "세미나")),
    ("maintenance", ("유지보수", "관리", "운영", "업데이트", "수정", "개선")),
)

INDUSTRY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("retail", ("쇼핑몰", "온라인스토어", "이커머스", "판매", "소매")),
    ("restaurant", ("음식점", "카페", "레스토랑", "요식업", "배달")),
    ("beauty", ("미용", "뷰티", "헤어", "네일", "에스테틱", "스킨케어")),
    ("fitness", ("헬스", "피트니스", "요가", "필라테스", "운동")),
    ("education", ("학원", "교육", "어학", "과외", "학습")),
    ("medical", ("병원", "의료", "치과", "한의원", "약국")),
    ("finance", ("금융", "보험", "투자", "대출", "부동산")),
    ("technology", ("it", "테크", "소프트웨어", "앱", "개발")),
)

SERVICE_TYPE_INDUSTRY = {
    "development": "technology",
    "design": "creative",
    "marketing": "marketing",
    "consulting": "business",
}

COMPLEX_SERVICE_MARKERS = ("커스텀", "맞춤", "고급")


@dataclass(frozen=True)
class QuoteCriteria:
    """What a quote asks for, in the vocabulary of the template library."""
    service_type: str = GENERAL
    industry: str = GENERAL
    complexity: Complexity = Complexity.STANDARD
    contract_category: str = DEFAULT_CONTRACT_CATEGORY_FOR_QUOTES
    amount: int = 0
    duration_days: int = DEFAULT_DURATION_DAYS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service_type": self.service_type,
            "industry": self.industry,
            "complexity": self.complexity.value,
            "contract_category": self.contract_category,
            "amount": self.amount,
            "duration_days": self.duration_days,
        }


def _contains(text: str, keyword: str) -> bool:
    # ASCII keywords are matched as whole words so "it" does not hit "digital".
    if keyword.isascii():
        return re.search(rf"\b{re.escape(keyword)}\b", text) is not None
    return keyword in text


def _service_text(service: Dict[str, Any]) -> Tuple[str, str]:
    name = service.get("serviceName") or service.get("name") or ""
    description = service.get("serviceDescription") or service.get("description") or ""
    return str(name), str(description)


def analyze_service_type(services: Sequence[Dict[str, Any]]) -> str:
    """Service type from the first keyword group found in names and descriptions."""
    if not services:
        return GENERAL
    text = " ".join(" ".join(_service_text(s)) for s in services).lower()
    for service_type, keywords in SERVICE_TYPE_KEYWORDS:
        if any(_contains(text, k) for k in keywords):
            return service_type
    return GENERAL


def infer_industry(services: Sequence[Dict[str, Any]], client: Optional[Dict[str, Any]] = None) -> str:
    """Industry from the client's company or category, else from the service type."""
    service_type = analyze_service_type(services)
    client = client or {}
    client_info = client.get("company") or client.get("serviceCategory") or ""
    text = f"{service_type} {client_info}".lower()
    for industry, keywords in INDUSTRY_KEYWORDS:
        if any(_contains(text, k) for k in keywords):
            return industry
    return SERVICE_TYPE_INDUSTRY.get(service_type, GENERAL)


def parse_duration(duration: Optional[str]) -> int:
    """Days in "N일", "N주" or "N개월"/"N월"; 30 when absent or unparseable."""
    if not duration:
        return DEFAULT_DURATION_DAYS
    text = str(duration).lower()
    if "일" in text:
        match = re.search(r"(\d+)\s*일", text)
        return int(match.group(1)) if match else DEFAULT_DURATION_DAYS
    if "주" in text:
        match = re.search(r"(\d+)\s*주", text)
        return int(match.group(1)) * 7 if match else DEFAULT_DURATION_DAYS
    if "개월" in text or "월" in text:
        match = re.search(r"(\d+)\s*(?:개월|월)", text)
        return int(match.group(1)) * 30 if match else DEFAULT_DURATION_DAYS
    return DEFAULT_DURATION_DAYS


def calculate_complexity(
    services: Sequence[Dict[str, Any]],
    amount: float,
    duration: Optional[str],
) -> Complexity:
    """
    Point score over service count, amount, duration and service detail.

    10 points or more is complex, 6 or more standard, anything less simple.
    """
    score = 0

    count = len(services) or 1
    if count >= 5:
        score += 3
    elif count >= 3:
        score += 2
    else:
        score += 1

    if amount >= 50_000_000:
        score += 4
    elif amount >= 10_000_000:
        score += 3
    elif amount >= 3_000_000:
        score += 2
    else:
        score += 1

    days = parse_duration(duration)
    if days >= 180:
        score += 3
    elif days >= 60:
        score += 2
    else:
        score += 1

    for service in services:
        _, description = _service_text(service)
        if len(description) > 100 or any(m in description for m in COMPLEX_SERVICE_MARKERS):
            score += 2
            break

    if score >= 10:
        return Complexity.COMPLEX
    if score >= 6:
        return Complexity.STANDARD
    return Complexity.SIMPLE


def _json_field(quote: Dict[str, Any], name: str, default):
    value = quote.get(name)
    if value is None:
        return default
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Quote field '{name}' is not valid JSON: {e}", field_name=name) from e
    return value


def quote_services(quote: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Service line items of a quote; `items` may be a list or a JSON string."""
    services = _json_field(quote, "items", [])
    if not isinstance(services, list) or not all(isinstance(s, dict) for s in services):
        raise ValidationError("Quote items must be a list of objects", field_name="items")
    return services


def quote_metadata(quote: Dict[str, Any]) -> Dict[str, Any]:
    """Metadata of a quote; `metadata` may be an object or a JSON string."""
    metadata = _json_field(quote, "metadata", {})
    if not isinstance(metadata, dict):
        raise ValidationError("Quote metadata must be an object", field_name="metadata")
    return metadata


def quote_amount(quote: Dict[str, Any]) -> float:
    amount = quote.get("amount") or 0
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount < 0:
        raise ValidationError("Quote amount must be a non-negative number", field_name="amount")
    return amount


def derive_criteria(quote: Dict[str, Any]) -> QuoteCriteria:
    """
    Derive matching criteria from a quote.

    Args:
        quote: Dict with `items` (list or JSON string of services), `amount`,
            `client`, `metadata` (list or JSON string, may hold `duration`)
            and optional `contract_category`.

    Raises:
        ValidationError: `items`, `metadata` or `amount` is malformed.
    """
    services = quote_services(quote)
    metadata = quote_metadata(quote)
    amount = quote_amount(quote)

    duration = metadata.get("duration") or quote.get("duration")
    return QuoteCriteria(
        service_type=analyze_service_type(services),
        industry=infer_industry(services, quote.get("client")),
        complexity=calculate_complexity(services, amount, duration),
        contract_category=quote.get("contract_category") or DEFAULT_CONTRACT_CATEGORY_FOR_QUOTES,
        amount=int(amount),
        duration_days=parse_duration(duration),
    )
