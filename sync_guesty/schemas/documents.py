from typing import Literal, Optional

from pydantic import BaseModel, Field


class DocumentNumberPayload(BaseModel):
    """
    Schema for requesting the number of a reservation's quote or invoice.
    """

    reservation_id: str = Field(..., min_length=1, description="Guesty reservation id")
    kind: Literal["quote", "invoice"] = Field(..., description="Document kind")
    year: Optional[int] = Field(None, ge=2000, le=9999, description="Sequence year (default: current)")


class SequenceUpdatePayload(BaseModel):
    """
    Schema for manually correcting the shared document sequence of a year.
    The next issued number will be value + 1.
    """

    value: int = Field(..., ge=0, description="Last issued number")
