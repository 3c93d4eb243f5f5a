"""
Best-effort parsing of free-form refiner model output.

Model formatting is not guaranteed, so every parser here has a defined
fallback and never raises on odd input. Section markers are matched
case-insensitively and tolerate markdown around them (``**AUDIT:**``,
``## VARIANTS:``, ``__FINAL OUTPUT__:``).
"""

import re

# Leading markdown a model may put in front of a section header.
_LEAD = r"[ \t#>*_`]*"
# Emphasis closing the header name, before and/or after the colon.
_CLOSE = r"[*_`]*[ \t]*:[*_`]*"


def _header(name: str) -> re.Pattern:
    return re.compile(rf"(?im)^{_LEAD}{name}{_CLOSE}[ \t]*")


_REFINED_PROMPT_HEADER = _header(r"REFINED[ _]PROMPT")
_EXPLANATION_HEADER = _header(r"EXPLANATION")
_AUDIT_HEADER = _header(r"AUDIT")
_VARIANTS_HEADER = _header(r"VARIANTS")
_FINAL_OUTPUT = re.compile(r"(?i)(?:[*_#]+[ \t]*)?FINAL[ _]OUTPUT" + _CLOSE)

_LIST_MARKER = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s+")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def _section(text: str, header: re.Pattern, *stops: re.Pattern) -> str | None:
    """Return the text after *header* up to the first following *stops* header."""
    match = header.search(text)
    if not match:
        return None
    body = text[match.end():]
    end = len(body)
    for stop in stops:
        stop_match = stop.search(body)
        if stop_match:
            end = min(end, stop_match.start())
    return body[:end].strip()


def parse_initialize_response(text: str) -> tuple[str, str]:
    """Split single-stage output into ``(authored, explanation)``.

    Without a ``REFINED_PROMPT:`` marker the whole text is the authored prompt.
    """
    text = (text or "").strip()
    refined = _section(text, _REFINED_PROMPT_HEADER, _EXPLANATION_HEADER)
    if not refined:
        return text, ""
    explanation = _section(text, _EXPLANATION_HEADER, _REFINED_PROMPT_HEADER) or ""
    return refined, explanation


def split_author_response(text: str) -> tuple[str, str]:
    """Split Author output on its ``FINAL OUTPUT:`` delimiter into ``(authored, explanation)``.

    The last delimiter wins. When there is no delimiter, or nothing follows
    it, the entire response becomes the authored prompt.
    """
    text = (text or "").strip()
    matches = list(_FINAL_OUTPUT.finditer(text))
    if matches:
        last = matches[-1]
        authored = text[last.end():].strip()
        if authored:
            return authored, text[:last.start()].strip()
    return text, ""


def parse_analyst_response(text: str, max_variants: int = 3) -> tuple[str, list[str]]:
    """Extract ``(audit, variants)`` from Analyst output."""
    text = (text or "").strip()
    audit = _section(text, _AUDIT_HEADER, _VARIANTS_HEADER)
    variants_section = _section(text, _VARIANTS_HEADER)

    if audit is None:
        variants_match = _VARIANTS_HEADER.search(text)
        audit = text[:variants_match.start()].strip() if variants_match else text

    variants = extract_variants(variants_section or "", max_variants=max_variants)
    return audit, variants


def extract_variants(section: str, max_variants: int = 3) -> list[str]:
    """Turn a VARIANTS section into at most *max_variants* strings.

    Numbered/bulleted items win (continuation lines join their item); then
    blank-line separated paragraphs; then the whole section as one variant.
    """
    section = (section or "").strip()
    if not section:
        return []

    lines = section.splitlines()
    if any(_LIST_MARKER.match(line) for line in lines):
        items: list[list[str]] = []
        for line in lines:
            marker = _LIST_MARKER.match(line)
            if marker:
                items.append([line[marker.end():].strip()])
            elif items and line.strip():
                items[-1].append(line.strip())
        variants = ["\n".join(part for part in item if part).strip() for item in items]
    else:
        variants = [p.strip() for p in _PARAGRAPH_BREAK.split(section)]

    variants = [v for v in variants if v]
    if not variants:
        variants = [section]
    return variants[:max_variants]
