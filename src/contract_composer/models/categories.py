"""Built-in category vocabularies.

These values seed the category registry. At runtime, valid categories are
always read from the registry snapshot, never from these tuples directly.
"""

from typing import Tuple

DEFAULT_CONTRACT_CATEGORY = "기타/일반"
DEFAULT_CLAUSE_CATEGORY = "기타 조항"

CONTRACT_CATEGORIES: Tuple[str, ...] = (
    "용역/프로젝트",
    "거래/구매",
    "비밀/보안",
    "근로/고용",
    "투자/자금",
    "파트너십/제휴",
    DEFAULT_CONTRACT_CATEGORY,
)

CLAUSE_CATEGORIES: Tuple[str, ...] = (
    "계약의 목적",
    "대금 지급 조건",
    "비밀유지 의무",
    "계약 해지 조건",
    "손해배상 제한",
    "지적재산권 귀속",
    "하자보증 기간",
    "근로시간 및 휴게",
    "투자금 회수 조건",
    "수익 분배 조건",
    "업무 범위 정의",
    "납품 및 검수",
    "일정 관리",
    "변경 관리",
    "품질 기준",
    "책임 분담",
    "불가항력",
    "준거법 및 관할",
    DEFAULT_CLAUSE_CATEGORY,
)
