"""
Classification prompt construction.

Each candidate becomes one fragment (id header + surrounding context); the
fragments are embedded in fixed instructions. The fragment text is also what
token-budgeted batching measures.
"""

from datetime import datetime
from typing import Optional, Sequence

from ..models.activities import ActivityCategory
from ..models.candidates import Candidate


CATEGORY_LIST = ", ".join(c.value for c in ActivityCategory)


def format_timestamp(ts: datetime) -> str:
    """
    Format a timestamp for the prompt.

    Examples:
        >>> format_timestamp(datetime(2025, 1, 5, 15, 4))
        'Jan 5, 2025, 3:04 PM'
    """
    hour = ts.hour % 12 or 12
    return f"{ts:%b} {ts.day}, {ts.year}, {hour}:{ts:%M} {ts:%p}"


def format_context(candidate: Candidate) -> str:
    """Surrounding context (target marked with >>>), or the message alone."""
    if candidate.context:
        return candidate.context
    return f">>> {candidate.sender}: {candidate.content}"


def format_candidate_fragment(candidate: Candidate) -> str:
    """
    Prompt fragment for one candidate.

    Shape:
        ---
        ID: 42 | Jan 5, 2025, 3:04 PM
        <context, or ">>> sender: content" when there is none>
        ---
    """
    return (
        "---\n"
        f"ID: {candidate.message_id} | {format_timestamp(candidate.timestamp)}\n"
        f"{format_context(candidate)}\n"
        "---"
    )


INSTRUCTIONS = """You are analyzing chat messages between people. Your task is to identify messages that suggest "things to do" - activities, places to visit, events to attend, trips to take, etc.

URLs in the chat may be followed by [URL_META: {{...}}] lines containing scraped metadata (title, description, platform). Use this metadata to understand what the link is about.
{user_context}
For each message marked with >>>, determine:
1. Is this a suggestion for something to do together? (yes/no)
2. If yes, a short title for the activity (under 100 chars)
3. Any location mentioned
4. Activity score: 0.0 (errand like vet/mechanic) to 1.0 (fun activity)
5. Fun score (0.0-1.0) and interesting score (0.0-1.0)
6. Category: {categories}
7. Normalized fields: action (base verb, synonyms normalized: tramping -> hike, film -> movie), object, venue, city, state, country. Use null when absent.
8. is_complete: true when action/object/venue/city/country fully describe the activity; false for compound or free-form activities ("hike and then kayak")
9. is_mappable: true if it can be pinned on a map (specific venue, city or maps URL)

Ignore mundane tasks, past events, vague statements, links shared without a suggestion, and private or intimate conversations.

{messages}

Respond in this exact JSON format (array of objects, one per message analyzed):
```json
[
  {{
    "message_id": <id>,
    "is_activity": true/false,
    "activity": "<title or null>",
    "location": "<location or null>",
    "activity_score": <0.0-1.0>,
    "fun_score": <0.0-1.0>,
    "interesting_score": <0.0-1.0>,
    "category": "<category>",
    "confidence": <0.0-1.0>,
    "action": "<verb or null>",
    "object": "<object or null>",
    "venue": "<venue or null>",
    "city": "<city or null>",
    "state": "<state or null>",
    "country": "<country or null>",
    "is_complete": true/false,
    "is_mappable": true/false
  }}
]
```

Include ALL messages in your response (both activities and non-activities)."""


def build_classification_prompt(
    candidates: Sequence[Candidate],
    home_country: Optional[str] = None,
    timezone: Optional[str] = None,
) -> str:
    """
    Build the classification prompt for a batch of candidates.

    Args:
        candidates: Batch members, in batch order
        home_country: Country used to resolve ambiguous place names
        timezone: User timezone, for relative dates

    Returns:
        Full prompt text
    """
    user_context = ""
    if home_country or timezone:
        lines = []
        if home_country:
            lines.append(f"The people chatting live in {home_country}.")
        if timezone:
            lines.append(f"Their timezone is {timezone}.")
        user_context = "\n" + " ".join(lines) + "\n"

    return INSTRUCTIONS.format(
        user_context=user_context,
        categories=CATEGORY_LIST,
        messages="\n".join(format_candidate_fragment(c) for c in candidates),
    )
