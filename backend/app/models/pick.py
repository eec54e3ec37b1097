"""Pick data models: bet types, structured selections and grading outcomes."""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class BetType(str, Enum):
    moneyline = "moneyline"
    spread = "spread"
    total = "total"


class PickResult(str, Enum):
    pending = "pending"
    win = "win"
    loss = "loss"
    push = "push"


GRADED_RESULTS = (PickResult.win.value, PickResult.loss.value, PickResult.push.value)

Side = Literal["home", "away"]
Direction = Literal["over", "under"]


# ---------- Structured selections (stored on the pick at creation time) ----------

class MoneylineSelection(BaseModel):
    kind: Literal["moneyline"] = "moneyline"
    side: Side


class SpreadSelection(BaseModel):
    kind: Literal["spread"] = "spread"
    side: Side
    line: float


class TotalSelection(BaseModel):
    kind: Literal["total"] = "total"
    direction: Direction
    line: float = Field(ge=0)


Selection = Annotated[
    Union[MoneylineSelection, SpreadSelection, TotalSelection],
    Field(discriminator="kind"),
]

selection_adapter: TypeAdapter[Selection] = TypeAdapter(Selection)


class GradeOutcome(BaseModel):
    """Result of grading one pick against a final score."""
    result: PickResult
    points: float = 0
    explanation: str = ""

    @property
    def is_graded(self) -> bool:
        return self.result != PickResult.pending
