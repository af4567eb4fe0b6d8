"""Exam attempt models — raw result records, attempts and their classification.

A dossier's exam history arrives from the results API as a flat list of
free-text records.  Ingestion turns each record into one of two tagged
variants:

  - CategorizedResult: the record maps to an exam category and a valid
    attempt result
  - UnclassifiedResult: the record could not be mapped (unknown exam type,
    invalid status, or beyond the attempt cap)

The discriminated ``ClassifiedResult`` union uses ``kind`` as its
discriminator so callers can dispatch without isinstance checks.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class AttemptResult(str, enum.Enum):
    """Outcome of a single exam sitting."""

    REUSSI = "reussi"
    ECHOUE = "echoue"
    ABSENT = "absent"


class CategoryStatus(str, enum.Enum):
    """Derived status of an exam category, also used for the case verdict."""

    NON_SAISI = "non_saisi"
    REUSSI = "reussi"
    ECHOUE = "echoue"
    ABSENT = "absent"


class ExamCategory(str, enum.Enum):
    """The three exam categories that together decide a case's verdict.

    Declaration order is the prompt-precedence order used by the lock
    coordinator.
    """

    CRENEAUX = "creneaux"
    CODE_CONDUITE = "codeConduite"
    TOUR_VILLE = "tourVille"


class Attempt(BaseModel):
    """One recorded outcome for a single exam sitting."""

    result: AttemptResult
    date: datetime | None = None
    note: str = ""


class ResultRecord(BaseModel):
    """Raw result record as returned by the results API.

    Accepts both the portal's wire names (``typeExamen``, ``statut``,
    ``commentaire``, ``dossier_id``) and camelCase names.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    case_id: str | None = Field(
        None, validation_alias=AliasChoices("case_id", "caseId", "dossier_id"),
    )
    exam_type: str = Field(
        "", validation_alias=AliasChoices("exam_type", "examType", "typeExamen"),
    )
    status: str = Field("", validation_alias=AliasChoices("status", "statut"))
    date: datetime | None = None
    comment: str | None = Field(
        None, validation_alias=AliasChoices("comment", "commentaire"),
    )

    @field_validator("exam_type", "status", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        # null from the portal means unset
        return "" if value is None else value

    def to_payload(self) -> dict:
        """Serialise to the body expected by ``POST /resultats``."""
        return {
            "dossier_id": self.case_id,
            "typeExamen": self.exam_type,
            "statut": self.status,
            "date": self.date.isoformat() if self.date else None,
            "commentaire": self.comment or "",
        }


# --- Classification (tagged union) ---

class CategorizedResult(BaseModel):
    """A record mapped to an exam category with a valid attempt."""

    kind: Literal["categorized"] = "categorized"
    category: ExamCategory
    attempt: Attempt


class UnclassifiedResult(BaseModel):
    """A record that could not be attached to any category.

    ``reason`` is one of:
      - unknown_exam_type: exam type matched none of the category keywords
      - invalid_status: status is not reussi/echoue/absent
      - over_cap: the category already holds the maximum number of attempts
    """

    kind: Literal["unclassified"] = "unclassified"
    reason: Literal["unknown_exam_type", "invalid_status", "over_cap"]
    record: ResultRecord
    category: ExamCategory | None = None


ClassifiedResult = Annotated[
    Union[CategorizedResult, UnclassifiedResult], Field(discriminator="kind")
]


def _empty_attempts() -> dict[ExamCategory, list[Attempt]]:
    return {category: [] for category in ExamCategory}


class CaseAttempts(BaseModel):
    """Per-category attempts of one dossier after ingestion.

    ``legacy`` holds per-category statuses stored by older records that
    predate per-attempt tracking; a value other than ``non_saisi`` overrides
    the derived status.
    """

    dossier_id: str | None = None
    attempts: dict[ExamCategory, list[Attempt]] = Field(default_factory=_empty_attempts)
    legacy: dict[ExamCategory, CategoryStatus] = Field(default_factory=dict)
    notes: str = ""
    unclassified: list[UnclassifiedResult] = Field(default_factory=list)

    def for_category(self, category: ExamCategory) -> list[Attempt]:
        """Attempts of ``category`` in chronological order (empty if none)."""
        return self.attempts.get(category, [])
