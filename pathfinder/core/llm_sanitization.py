"""LLM input sanitization for prompt injection prevention.

Security: Experience descriptions and edited STAR sections are user-authored
and end up inside scoring and generation prompts. This module neutralizes
role markers and prompt-structure tags before that happens.

This is defense-in-depth, not a complete solution. Prompts also wrap user
text in explicit delimiters.
"""

import re
import unicodedata

# =============================================================================
# Confusable Characters (Cyrillic/Greek -> Latin)
# =============================================================================

# NFKC does not fold cross-script homoglyphs, so the common ones are mapped
# explicitly (Unicode TR39 confusables).
_CONFUSABLE_MAP: dict[int, str] = {
    0x0430: "a",
    0x0441: "c",
    0x0435: "e",
    0x0456: "i",
    0x043E: "o",
    0x0440: "p",
    0x0455: "s",
    0x0445: "x",
    0x0443: "y",
    0x0410: "A",
    0x0412: "B",
    0x0421: "C",
    0x0415: "E",
    0x041D: "H",
    0x0406: "I",
    0x041A: "K",
    0x041C: "M",
    0x041E: "O",
    0x0420: "P",
    0x0405: "S",
    0x0422: "T",
    0x0425: "X",
    0x0391: "A",
    0x0392: "B",
    0x0395: "E",
    0x0397: "H",
    0x0399: "I",
    0x039A: "K",
    0x039C: "M",
    0x039D: "N",
    0x039F: "O",
    0x03A1: "P",
    0x03A4: "T",
    0x03A7: "X",
    0x03BF: "o",
}

_CONFUSABLE_TRANS = str.maketrans(_CONFUSABLE_MAP)

# Invisible characters that split tokens and defeat the patterns below
_ZERO_WIDTH_PATTERN = re.compile(
    "["
    "\u00ad"  # Soft hyphen
    "\u034f"  # Combining grapheme joiner
    "\u061c"  # Arabic letter mark
    "\u180e"  # Mongolian vowel separator
    "\u200b-\u200f"  # Zero-width space/joiners, LRM, RLM
    "\u202a-\u202e"  # BiDi embedding controls
    "\u2060-\u2064"  # Word joiner, invisible operators
    "\u2066-\u2069"  # BiDi isolate controls
    "\ufe00-\ufe0f"  # Variation selectors
    "\ufeff"  # BOM / zero-width no-break space
    "\U000e0001"  # Language tag
    "\U000e0020-\U000e007f"  # Tag characters
    "]"
)

_CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_COMBINING_MARK_CATEGORIES = frozenset(("Mn", "Me"))

_REPLACEMENT_TAG = "[TAG]"
_REPLACEMENT_FILTERED = "[FILTERED]"
_REPLACEMENT_FILTERED_COLON = "[FILTERED]:"

# Tags used to structure PERT prompts and to delimit model output. A user
# who types one of these could otherwise close a section early or forge a
# STAR section in the model's reply.
_STRUCTURAL_TAGS = (
    "experience",
    "competency",
    "criteria",
    "evidence",
    "situation",
    "task",
    "action",
    "result",
    "score",
)

_INJECTION_PATTERNS: list[tuple[str, str, int]] = [
    # System prompt override attempts
    (r"^\s*SYSTEM\s*:", _REPLACEMENT_FILTERED_COLON, re.IGNORECASE | re.MULTILINE),
    # Role tags (XML and ChatML styles)
    (r"<\s*/?\s*(?:system|user|assistant)\s*>", _REPLACEMENT_TAG, re.IGNORECASE),
    (r"<\|(?:system|user|assistant|im_start|im_end)\|>", _REPLACEMENT_TAG, 0),
    # Underscore tags are prompt-internal (<experience_text>, <quantified_impact>)
    (r"<\s*/?\s*[a-z]+(?:_[a-z]+)+(?:\s[^>]*)?\s*>", _REPLACEMENT_TAG, re.IGNORECASE),
    (
        r"<\s*/?\s*(?:" + "|".join(_STRUCTURAL_TAGS) + r")(?:\s[^>]*)?\s*>",
        _REPLACEMENT_TAG,
        re.IGNORECASE,
    ),
    # Instruction overrides
    (
        r"ignore\s+(all\s+)?previous\s+instructions?",
        _REPLACEMENT_FILTERED,
        re.IGNORECASE,
    ),
    (r"disregard\s+(all\s+)?(prior|previous)", _REPLACEMENT_FILTERED, re.IGNORECASE),
    (r"new\s+instructions?\s*:", _REPLACEMENT_FILTERED_COLON, re.IGNORECASE),
    (r"\[/?INST\]", _REPLACEMENT_FILTERED, re.IGNORECASE),
    (r"^\s*(?:Human|Assistant)\s*:", _REPLACEMENT_FILTERED_COLON, re.IGNORECASE | re.MULTILINE),
]


def sanitize_llm_input(text: str) -> str:
    """Sanitize user-provided text before embedding it in an LLM prompt.

    Steps: NFKC normalize, strip zero-width characters, strip combining
    marks, fold confusables, drop control characters, then neutralize
    injection patterns. Legitimate accounting prose passes through with at
    most accent folding.

    Args:
        text: Raw user-provided text (experience description, STAR section).

    Returns:
        Sanitized text with injection patterns neutralized.
    """
    if not text:
        return text

    result = unicodedata.normalize("NFKC", text)
    result = _ZERO_WIDTH_PATTERN.sub("", result)

    # NFD first so precomposed letters expose their marks
    result = unicodedata.normalize("NFD", result)
    result = "".join(
        ch
        for ch in result
        if unicodedata.category(ch) not in _COMBINING_MARK_CATEGORIES
    )

    result = result.translate(_CONFUSABLE_TRANS)
    result = _CONTROL_CHAR_PATTERN.sub("", result)

    for pattern, replacement, flags in _INJECTION_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=flags)

    return unicodedata.normalize("NFC", result)
