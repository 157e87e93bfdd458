"""Label quality gate: block-list, canonical mapping, casing and de-duplication.

Rules, applied to each raw candidate in order:
1. Strip surrounding whitespace, quotes and stray punctuation
2. Reject labels of 2 characters or fewer and block-listed labels
   (case-insensitive)
3. Keep labels that already are a canonical form (a tag map value);
   replace with the canonical form if the lowercase label is a tag map
   key, rejecting a canonical form that fails rule 2; title-case
   everything else
4. Reject a label whose singular form (one trailing "s" removed) matches
   the singular form of a label already accepted (case-insensitive)

Accepted labels keep their first-seen order. Running the gate over its own
output returns the same list.
"""

import re
from collections.abc import Collection, Iterable, Mapping

from tagging_lambda.core.logging import get_logger

logger = get_logger(__name__)

MIN_LABEL_LENGTH = 3

# Characters stripped from both ends of a raw candidate
STRIP_CHARS = " \t\r\n\"'`.,;:*[](){}"

_WORD_PATTERN = re.compile(r"[^\W\d_]+")


def title_case(text: str) -> str:
    """Title-case each run of letters, leaving all-uppercase runs untouched.

    All-uppercase runs are treated as acronyms ("SANRAL", "ICT").

    Examples:
        >>> title_case("road maintenance")
        'Road Maintenance'
        >>> title_case("sanral ICT services")
        'Sanral ICT Services'
    """

    def _word(match: re.Match[str]) -> str:
        word = match.group(0)
        if len(word) > 1 and word.isupper():
            return word
        return word[0].upper() + word[1:].lower()

    return _WORD_PATTERN.sub(_word, text)


def singular_key(label: str) -> str:
    """Case-insensitive comparison key with one trailing "s" removed."""
    lowered = label.lower()
    return lowered[:-1] if lowered.endswith("s") else lowered


def _is_rejected(label: str, blocklist: Collection[str]) -> bool:
    return len(label) < MIN_LABEL_LENGTH or label.lower() in blocklist


def normalize_label(
    raw_label: str | None,
    blocklist: Collection[str],
    tag_map: Mapping[str, str],
    canonical_labels: Collection[str] = (),
) -> str | None:
    """Clean a single candidate, or return None if it is rejected.

    Args:
        raw_label: Candidate as produced by extraction or the model.
        blocklist: Lowercase labels that must never be emitted.
        tag_map: Lowercase variant -> canonical label.
        canonical_labels: Canonical labels (the tag map's values), kept as-is.

    Returns:
        The mapped or title-cased label, or None.
    """
    if raw_label is None:
        return None

    label = raw_label.strip(STRIP_CHARS)
    if _is_rejected(label, blocklist):
        logger.debug(
            "Label blocked or too short",
            extra={"rejected_value": raw_label[:100]},
        )
        return None

    if label in canonical_labels:
        return label

    mapped = tag_map.get(label.lower())
    if mapped is None:
        return title_case(label)

    if _is_rejected(mapped, blocklist):
        logger.debug(
            "Mapped label blocked or too short",
            extra={"rejected_value": raw_label[:100], "mapped_value": mapped},
        )
        return None
    return mapped


def normalize_labels(
    raw_labels: Iterable[str | None],
    blocklist: Collection[str],
    tag_map: Mapping[str, str],
    *,
    existing: Iterable[str] = (),
    max_labels: int | None = None,
) -> list[str]:
    """Apply the quality gate to a sequence of raw candidates.

    Args:
        raw_labels: Candidates in priority order.
        blocklist: Lowercase labels that must never be emitted.
        tag_map: Lowercase variant -> canonical label.
        existing: Labels already accepted. They are kept at the front of the
            result and take part in duplicate detection.
        max_labels: Stop accepting once the result holds this many labels.

    Returns:
        Accepted labels in first-seen order, existing labels first.
    """
    accepted: list[str] = list(existing)
    seen_keys = {singular_key(label) for label in accepted}
    canonical_labels = set(tag_map.values())

    for raw_label in raw_labels:
        if max_labels is not None and len(accepted) >= max_labels:
            break

        label = normalize_label(raw_label, blocklist, tag_map, canonical_labels)
        if label is None:
            continue

        key = singular_key(label)
        if key in seen_keys:
            logger.debug(
                "Label considered duplicate (singular form exists)",
                extra={"label": label, "singular_key": key},
            )
            continue

        seen_keys.add(key)
        accepted.append(label)

    return accepted
