"""
Data models for resume analysis records.

Field names match the persisted JSON layout. Records written by earlier
clients under the legacy key names are renamed on load.
"""

from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

# Scores are whole numbers; floats, booleans and numeric strings are rejected.
Score = Annotated[int, Field(strict=True, ge=0, le=100)]

TipType = Literal["good", "improve"]

CATEGORY_NAMES = ("toneAndStyle", "content", "structure", "skills")

# Keys written by earlier clients, mapped to their current names
LEGACY_RECORD_KEYS = {"resumePath": "documentPath", "imagePath": "previewImagePath"}


class TipHeadline(BaseModel):
    """Headline-only tip, before the explanation is attached."""

    type: TipType
    tip: str


class Tip(TipHeadline):
    """Single piece of feedback with its elaboration."""

    explanation: str


class CategoryFeedback(BaseModel):
    """Score and ordered tips for one evaluation category."""

    score: Score
    tips: list[Tip]


class Feedback(BaseModel):
    """
    Complete evaluation of a resume against a job description.

    The category set is closed: exactly toneAndStyle, content, structure
    and skills. Unknown top-level keys are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    overallScore: Score
    toneAndStyle: CategoryFeedback
    content: CategoryFeedback
    structure: CategoryFeedback
    skills: CategoryFeedback

    @property
    def categories(self) -> dict[str, CategoryFeedback]:
        """Categories in display order."""
        return {name: getattr(self, name) for name in CATEGORY_NAMES}

    def tips_by_type(self, tip_type: TipType) -> list[Tip]:
        """All tips of one type across categories, in display order."""
        return [
            tip
            for category in self.categories.values()
            for tip in category.tips
            if tip.type == tip_type
        ]


class AnalysisRecord(BaseModel):
    """
    One persisted resume submission and its eventual analysis.

    ``feedback`` is None until a validated Feedback is attached. On the
    wire the unanalyzed state is the empty string, which is what existing
    stored records contain.

    Records are frozen: the document paths are write-once, and attaching
    feedback produces a new record through ``with_feedback``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    documentPath: str
    previewImagePath: str
    companyName: str = ""
    jobTitle: str = ""
    jobDescription: str = ""
    feedback: Feedback | None = None

    @model_validator(mode="before")
    @classmethod
    def rename_legacy_keys(cls, data: Any) -> Any:
        """Handle legacy records stored with resumePath/imagePath."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for old, new in LEGACY_RECORD_KEYS.items():
            if old in data:
                data.setdefault(new, data.pop(old))
        return data

    @field_validator("feedback", mode="before")
    @classmethod
    def validate_feedback(cls, v: Any) -> Any:
        """Map the empty-string sentinel to the unanalyzed state."""
        if v == "":
            return None
        return v

    @field_serializer("feedback")
    def serialize_feedback(self, feedback: Feedback | None) -> Any:
        if feedback is None:
            return ""
        return feedback.model_dump()

    @property
    def is_analyzed(self) -> bool:
        return self.feedback is not None

    def with_feedback(self, feedback: Feedback) -> "AnalysisRecord":
        """Return a copy of this record carrying ``feedback``."""
        return self.model_copy(update={"feedback": feedback})
