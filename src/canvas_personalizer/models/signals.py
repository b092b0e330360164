from __future__ import annotations

from typing import Any, Generic, Literal, NotRequired, TypedDict, TypeVar

T = TypeVar("T")

SignalSource = Literal["keyword", "llm", "merge"]

TeamSizeBracket = Literal["solo", "1-9", "10-24", "25+", "unknown"]
Seniority = Literal["ic", "manager", "director+"]
ApprovalChainDepth = Literal["single", "dual", "multi", "unknown"]
IntegrationCriticality = Literal["must-have", "nice-to-have", "unspecified"]
ComplianceTag = Literal["SOC2", "HIPAA", "ISO27001", "GDPR", "SOX", "audit", "regulated-industry", "other"]
CopyTone = Literal["fast-paced", "meticulous", "trusted-advisor", "onboarding", "migration", "neutral"]
IndustryTag = Literal["saas", "fintech", "healthcare", "education", "manufacturing", "public-sector", "other"]
PrimaryObjective = Literal["launch", "scale", "migrate", "optimize", "compliance", "other"]
TimelineConstraint = Literal["rush", "standard", "flexible"]
BudgetConstraint = Literal["tight", "standard", "premium"]
OperatingRegion = Literal["na", "emea", "latam", "apac", "global", "unspecified"]


class SignalMetadata(TypedDict):
    source: SignalSource
    confidence: float
    notes: NotRequired[str]


class SignalValue(TypedDict, Generic[T]):
    value: T
    metadata: SignalMetadata


class DecisionMaker(TypedDict):
    role: str
    seniority: Seniority
    isPrimary: bool


class ConstraintSignal(TypedDict, total=False):
    timeline: TimelineConstraint
    budget: BudgetConstraint
    notes: str


class SignalSet(TypedDict):
    teamSizeBracket: SignalValue[TeamSizeBracket]
    decisionMakers: SignalValue[list[DecisionMaker]]
    approvalChainDepth: SignalValue[ApprovalChainDepth]
    tools: SignalValue[list[str]]
    integrationCriticality: SignalValue[IntegrationCriticality]
    complianceTags: SignalValue[list[ComplianceTag]]
    copyTone: SignalValue[CopyTone]
    industry: SignalValue[IndustryTag]
    primaryObjective: SignalValue[PrimaryObjective]
    constraints: SignalValue[ConstraintSignal]
    operatingRegion: SignalValue[OperatingRegion]


class PartialSignalSet(TypedDict, total=False):
    teamSizeBracket: SignalValue[TeamSizeBracket]
    decisionMakers: SignalValue[list[DecisionMaker]]
    approvalChainDepth: SignalValue[ApprovalChainDepth]
    tools: SignalValue[list[str]]
    integrationCriticality: SignalValue[IntegrationCriticality]
    complianceTags: SignalValue[list[ComplianceTag]]
    copyTone: SignalValue[CopyTone]
    industry: SignalValue[IndustryTag]
    primaryObjective: SignalValue[PrimaryObjective]
    constraints: SignalValue[ConstraintSignal]
    operatingRegion: SignalValue[OperatingRegion]


class SignalSummary(TypedDict):
    key: str
    value: Any
    source: SignalSource
    confidence: float
    notes: NotRequired[str]


SIGNAL_KEYS: tuple[str, ...] = (
    "teamSizeBracket",
    "decisionMakers",
    "approvalChainDepth",
    "tools",
    "integrationCriticality",
    "complianceTags",
    "copyTone",
    "industry",
    "primaryObjective",
    "constraints",
    "operatingRegion",
)
