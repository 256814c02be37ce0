"""
Data models for activity candidates.

A candidate is a chat message flagged as possibly describing something to do.
Candidates come from two extraction passes (heuristic and semantic) and are
merged, never mutated, during consolidation.
"""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Tuple, Union

from pydantic import Field
from typing_extensions import Annotated

from .base import FrozenCamelModel


class CandidateKind(str, Enum):
    """Whether a candidate proposes something or responds to a proposal."""

    SUGGESTION = "suggestion"
    AGREEMENT = "agreement"


class PatternSource(FrozenCamelModel):
    """Candidate matched by a named regex pattern."""

    type: Literal["pattern"] = "pattern"
    pattern: str


class UrlSource(FrozenCamelModel):
    """Candidate matched because it shares a categorized URL."""

    type: Literal["url"] = "url"
    url_type: str


class SemanticSource(FrozenCamelModel):
    """Candidate matched by embedding similarity to a query."""

    type: Literal["semantic"] = "semantic"
    similarity: float = Field(ge=0.0, le=1.0)
    query: str


CandidateSource = Annotated[
    Union[PatternSource, UrlSource, SemanticSource],
    Field(discriminator="type"),
]


class Candidate(FrozenCamelModel):
    """
    A message flagged as a possible activity mention.

    Confidence is source-specific and not calibrated across sources.
    """

    message_id: int = Field(description="Id of the originating message", ge=0)
    content: str = Field(description="Message text")
    sender: str
    timestamp: datetime
    source: CandidateSource
    confidence: float = Field(description="Source-specific confidence (0.0-1.0)", ge=0.0, le=1.0)
    candidate_kind: CandidateKind = Field(default=CandidateKind.SUGGESTION)
    context: Optional[str] = Field(
        default=None, description="Surrounding messages with the target marked by >>>"
    )
    urls: Optional[List[str]] = None

    @property
    def is_agreement(self) -> bool:
        return self.candidate_kind == CandidateKind.AGREEMENT


class Batch(FrozenCamelModel):
    """Ordered candidates assembled for one classification call."""

    index: int = Field(ge=0)
    candidates: Tuple[Candidate, ...]
    estimated_tokens: Optional[int] = None

    @property
    def message_ids(self) -> List[int]:
        return [c.message_id for c in self.candidates]

    def __len__(self) -> int:
        return len(self.candidates)
