"""FNA domain schemas - step payloads and API models"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...shared.validators import calculate_age
from .calculator import summarize_family_security

# Fixed goal catalog for the financialGoals step; selection order is priority
FNA_GOAL_CATALOG = (
    {"id": "1", "icon": "🏥", "title": "醫療保障", "description": "照顧自己失去賺錢能力的缺口"},
    {"id": "2", "icon": "🏠", "title": "家庭保障", "description": "你對家庭的承諾與責任"},
    {"id": "3", "icon": "🎓", "title": "子女教育", "description": "針對小孩我們特有的期望與安排"},
    {
        "id": "4",
        "icon": "💰",
        "title": "財務自由",
        "description": "當我們被動收入大於主動收入時，可選擇不工作還有可靠的收入，俗稱「退休規劃」",
    },
    {
        "id": "5",
        "icon": "💎",
        "title": "資產傳承",
        "description": "當我們有能力在生前贈與，或百年後留遺產給你關心的人",
    },
)
FNA_GOAL_IDS = tuple(goal["id"] for goal in FNA_GOAL_CATALOG)

RELATION_SELF = "本人"
RELATION_SPOUSE = "配偶"

LIFESTYLE_OPTIONS = (
    {"value": "basic", "label": "基本生活", "monthly_amount": 5},
    {"value": "comfortable", "label": "舒適生活", "monthly_amount": 12},
    {"value": "premium", "label": "優質生活", "monthly_amount": 20},
)

FAMILY_SECURITY_CATEGORIES = (
    {"key": "livingExpense", "label": "生活費用需求", "kind": "monthly"},
    {"key": "housingExpense", "label": "住房費用需求", "kind": "monthly"},
    {"key": "childExpense", "label": "子女費用需求", "kind": "monthly"},
    {"key": "parentExpense", "label": "父母孝養需求", "kind": "monthly"},
    {"key": "otherExpense", "label": "其他費用需求", "kind": "monthly"},
    {"key": "finalExpense", "label": "最後費用", "kind": "lump_sum"},
)


class StepPayload(BaseModel):
    """Steps are permissive: unknown keys are kept as entered"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ---------------------------------------------------------------------------
# familyMembers
# ---------------------------------------------------------------------------


class FamilyMember(StepPayload):
    id: str
    relation: str
    name: str = ""
    gender: str = ""
    birthDate: Optional[date] = None
    age: Optional[int] = None
    occupation: str = ""

    @field_validator("birthDate", mode="before")
    @classmethod
    def blank_birth_date(cls, v):
        return v or None

    @model_validator(mode="after")
    def derive_age(self):
        if self.birthDate is not None:
            self.age = calculate_age(self.birthDate)
        return self


class FamilyMembersStep(BaseModel):
    members: list[FamilyMember] = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_list(cls, data):
        if isinstance(data, list):
            return {"members": data}
        return data


def seeded_family_members() -> list[dict]:
    """The two rows every new wizard starts with"""
    return [
        {"id": "1", "relation": RELATION_SELF, "name": "", "gender": "", "birthDate": None, "age": 0, "occupation": ""},
        {"id": "2", "relation": RELATION_SPOUSE, "name": "", "gender": "", "birthDate": None, "age": 0, "occupation": ""},
    ]


# ---------------------------------------------------------------------------
# financialGoals
# ---------------------------------------------------------------------------


class FinancialGoalsStep(BaseModel):
    selected: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_list(cls, data):
        if isinstance(data, list):
            # Either ids or catalog entries
            return {"selected": [g["id"] if isinstance(g, dict) else g for g in data]}
        return data

    @field_validator("selected")
    @classmethod
    def validate_selection(cls, v):
        unknown = [goal_id for goal_id in v if goal_id not in FNA_GOAL_IDS]
        if unknown:
            raise ValueError(f"Unknown goal id(s): {', '.join(unknown)}")
        if len(set(v)) != len(v):
            raise ValueError("Each goal can only be selected once")
        return v

    def prioritized(self) -> list[dict]:
        by_id = {goal["id"]: goal for goal in FNA_GOAL_CATALOG}
        return [{**by_id[goal_id], "priority": rank} for rank, goal_id in enumerate(self.selected, start=1)]


# ---------------------------------------------------------------------------
# medicalProtection / childrenEducation / financialFreedom
# ---------------------------------------------------------------------------


class NeedHave(StepPayload):
    need: Optional[float] = None
    have: Optional[float] = None


class MemberProtection(StepPayload):
    hospitalization: Optional[NeedHave] = None
    medicalLimit: Optional[NeedHave] = None
    disability: Optional[NeedHave] = None
    criticalIllness: Optional[NeedHave] = None
    cancerBenefit: Optional[NeedHave] = None


class MedicalProtectionStep(StepPayload):
    """Keyed by member id (self, spouse, child1, ...)"""


class ChildEducation(StepPayload):
    bachelorFee: Optional[float] = None
    masterFee: Optional[float] = None
    yearsUntilCollege: Optional[float] = None
    inflationRate: Optional[float] = None
    preparedAmount: Optional[float] = None


class ChildrenEducationStep(StepPayload):
    """Keyed by child id (child1, child2, ...)"""


class FinancialFreedomStep(StepPayload):
    lifestyle: str = "comfortable"
    currentSavings: Optional[float] = None
    monthlyWithdrawal: Optional[float] = None
    retirementAge: Optional[float] = None
    inflationRate: Optional[float] = None

    @field_validator("lifestyle")
    @classmethod
    def validate_lifestyle(cls, v):
        allowed = {option["value"] for option in LIFESTYLE_OPTIONS}
        if v not in allowed:
            raise ValueError(f"Lifestyle must be one of: {', '.join(sorted(allowed))}")
        return v


# Blank numeric inputs arrive as "" from forms
def _blank_to_none(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: _blank_to_none(v) for k, v in data.items()}
    if data == "":
        return None
    return data


def _drop_blanks(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: _drop_blanks(v) for k, v in data.items() if v is not None and v != ""}
    return data


# ---------------------------------------------------------------------------
# familySecurity
# ---------------------------------------------------------------------------


class SecurityNeedItem(StepPayload):
    amount: float = 0
    years: float = 0


class FamilySecurityStep(StepPayload):
    livingExpense: SecurityNeedItem = Field(default_factory=SecurityNeedItem)
    housingExpense: SecurityNeedItem = Field(default_factory=SecurityNeedItem)
    childExpense: SecurityNeedItem = Field(default_factory=SecurityNeedItem)
    parentExpense: SecurityNeedItem = Field(default_factory=SecurityNeedItem)
    otherExpense: SecurityNeedItem = Field(default_factory=SecurityNeedItem)
    finalExpense: SecurityNeedItem = Field(default_factory=SecurityNeedItem)
    activeIncome: float = 0
    passiveIncome: float = 0
    liquidAssets: float = 0
    laborInsurance: float = 0
    groupInsurance: float = 0
    commercialInsurance: float = 0

    @model_validator(mode="before")
    @classmethod
    def blanks_are_zero(cls, data):
        return _drop_blanks(data)

    def summary(self) -> dict:
        return summarize_family_security(self.model_dump())


def normalize_step_payload(step: str, payload: Any) -> Any:
    """Validate a step payload and return the JSON-ready form that gets stored"""
    if step == "familyMembers":
        return FamilyMembersStep.model_validate(payload).model_dump(mode="json")["members"]
    if step == "financialGoals":
        return FinancialGoalsStep.model_validate(payload).prioritized()
    if step == "medicalProtection":
        data = _blank_to_none(payload or {})
        return {
            member_id: MemberProtection.model_validate(values).model_dump(mode="json", exclude_none=True)
            for member_id, values in MedicalProtectionStep.model_validate(data).model_dump().items()
        }
    if step == "childrenEducation":
        data = _blank_to_none(payload or {})
        return {
            child_id: ChildEducation.model_validate(values).model_dump(mode="json", exclude_none=True)
            for child_id, values in ChildrenEducationStep.model_validate(data).model_dump().items()
        }
    if step == "familySecurity":
        security = FamilySecurityStep.model_validate(payload or {})
        return {**security.model_dump(mode="json"), "summary": security.summary()}
    if step == "financialFreedom":
        return FinancialFreedomStep.model_validate(_blank_to_none(payload or {})).model_dump(mode="json")
    raise ValueError(f"Unknown wizard step: {step}")


# ---------------------------------------------------------------------------
# API models
# ---------------------------------------------------------------------------


class DraftUpdate(BaseModel):
    fna_data: dict[str, Any]


class FnaSnapshotResponse(BaseModel):
    client_id: int
    fna_data: dict[str, Any]
    steps: list[str]
    completed_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None


class StepResult(BaseModel):
    step: str
    next_step: Optional[str]
    completed: bool
    fna_data: dict[str, Any]
