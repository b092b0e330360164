from __future__ import annotations

from typing import Literal, NotRequired, TypedDict, Union

KnobId = Literal[
    "approvalChainLength",
    "integrationMode",
    "copyTone",
    "inviteStrategy",
    "notificationCadence",
]

KnobValue = Union[int, str]


class KnobOverride(TypedDict):
    value: KnobValue
    rationale: str
    changedFromDefault: bool


class KnobOverrideSet(TypedDict):
    approvalChainLength: KnobOverride
    integrationMode: KnobOverride
    copyTone: KnobOverride
    inviteStrategy: KnobOverride
    notificationCadence: KnobOverride


class FallbackMeta(TypedDict):
    applied: bool
    reasons: list[str]
    details: NotRequired[list[str]]


class ScoringResult(TypedDict):
    overrides: KnobOverrideSet
    fallback: FallbackMeta


KNOB_IDS: tuple[str, ...] = (
    "approvalChainLength",
    "integrationMode",
    "copyTone",
    "inviteStrategy",
    "notificationCadence",
)
