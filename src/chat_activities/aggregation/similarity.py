"""
String similarity for fuzzy activity-name matching.
"""

import re


def normalize_string(text: str) -> str:
    """
    Lowercase, trim and collapse internal whitespace.

    Examples:
        >>> normalize_string("  Pottery   Class ")
        'pottery class'
    """
    return re.sub(r"\s+", " ", text.lower().strip())


def levenshtein_distance(a: str, b: str) -> int:
    """
    Edit distance (insertions, deletions, substitutions) between two strings.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(a) + 1))
    for i, cb in enumerate(b, start=1):
        current = [i] + [0] * len(a)
        for j, ca in enumerate(a, start=1):
            cost = 0 if ca == cb else 1
            current[j] = min(
                previous[j - 1] + cost,  # substitution
                current[j - 1] + 1,  # insertion
                previous[j] + 1,  # deletion
            )
        previous = current
    return previous[len(a)]


def name_similarity(a: str, b: str) -> float:
    """
    Similarity ratio in [0.0, 1.0] between two activity names.

    1 - levenshtein(norm(a), norm(b)) / max(len(norm(a)), len(norm(b))).
    Identical normalized strings score 1.0; an empty string scores 0.0.

    Examples:
        >>> name_similarity("pottery class", "Pottery Classes")
        0.8666666666666667
    """
    norm_a = normalize_string(a)
    norm_b = normalize_string(b)

    if norm_a == norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0

    distance = levenshtein_distance(norm_a, norm_b)
    return 1 - distance / max(len(norm_a), len(norm_b))
