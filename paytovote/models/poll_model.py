from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from paytovote.config import MANIFESTO_MAX_LENGTH


class CandidateIn(BaseModel):
    name: str = ""
    picture_url: Optional[str] = None
    manifesto_summary: Optional[str] = Field(None, max_length=MANIFESTO_MAX_LENGTH)


class Candidate(BaseModel):
    id: str
    poll_id: str
    name: str
    picture_url: Optional[str] = None
    manifesto_summary: Optional[str] = None
    position: int = 0


class PollCreate(BaseModel):
    title: str = Field(..., json_schema_extra={"example": "HOD Election"})
    cost_per_vote: int = Field(..., json_schema_extra={"example": 100})
    is_active: bool = True
    candidates: List[CandidateIn] = Field(default_factory=list)


class Poll(BaseModel):
    id: str
    title: str
    cost_per_vote: int
    is_active: bool
    created_at: datetime
    created_by: Optional[str] = None
    candidates: List[Candidate] = Field(default_factory=list)

    def candidate(self, candidate_id: str) -> Optional[Candidate]:
        return next((c for c in self.candidates if c.id == candidate_id), None)


class PollStatusUpdate(BaseModel):
    is_active: bool
