"""
Contact information filter

Strips email addresses, phone numbers and external links from user text
before it is stored. The filter never raises: text with nothing to redact
comes back unchanged with an empty ``blocked_items`` list.
"""
import os
import re
from dataclasses import dataclass, field
from typing import List, Tuple
from urllib.parse import urlsplit

CONTACT_PLACEHOLDER = '[Contact information blocked]'
LINK_PLACEHOLDER = '[External link blocked]'

SAFE_LINK_DOMAINS = tuple(
    d.strip().lower()
    for d in os.getenv('SAFE_LINK_DOMAINS', 'shadikhanabadi.com,localhost,127.0.0.1').split(',')
    if d.strip()
)

EMAIL_RE = re.compile(r'(?<![\w.-])[\w.-]+@[\w.-]+\.\w+')
PHONE_RE = re.compile(
    r'(?<!\d)(?:(?:\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}|\d{10})(?!\d)'
)
URL_RE = re.compile(
    r'(?:https?://)?(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b[-a-zA-Z0-9()@:%_+.~#?&/=]*',
    re.IGNORECASE,
)
IPV4_RE = re.compile(r'\d{1,3}(?:\.\d{1,3}){3}')

# Bound on redaction rounds; each round removes at least one match.
_MAX_ROUNDS = 16


@dataclass
class FilterResult:
    filtered: str
    blocked_items: List[str] = field(default_factory=list)

    @property
    def contains_blocked_content(self) -> bool:
        return bool(self.blocked_items)


def _looks_like_phone(candidate: str) -> bool:
    digits = sum(ch.isdigit() for ch in candidate)
    if digits < 10 or digits > 15:
        return False
    # long bare digit runs are record ids, not phone numbers
    if candidate.isdigit() and len(candidate) > 12:
        return False
    return True


def _host_of(url: str) -> str:
    target = url if url.lower().startswith(('http://', 'https://')) else f'https://{url}'
    try:
        return (urlsplit(target).hostname or '').lower()
    except ValueError:
        return ''


def _looks_like_link(url: str) -> bool:
    host = _host_of(url).rstrip('.')
    if not host:
        return False
    if IPV4_RE.fullmatch(host):
        return True
    # "5.8" and "e.g." are not links
    tld = host.rsplit('.', 1)[-1]
    return len(tld) >= 2 and tld.isalpha()


def is_safe_link(url: str) -> bool:
    host = _host_of(url).rstrip('.')
    if not host:
        return False
    return any(host == safe or host.endswith('.' + safe) for safe in SAFE_LINK_DOMAINS)


def _find_spans(text: str) -> List[Tuple[int, int, int]]:
    """Return (start, end, pass_order) spans of everything that must be hidden."""
    spans = []
    for m in EMAIL_RE.finditer(text):
        spans.append((m.start(), m.end(), 0))
    for m in PHONE_RE.finditer(text):
        if _looks_like_phone(m.group()):
            spans.append((m.start(), m.end(), 1))
    for m in URL_RE.finditer(text):
        if _looks_like_link(m.group()) and not is_safe_link(m.group()):
            spans.append((m.start(), m.end(), 2))
    return spans


def _merge(spans):
    # Overlapping spans collapse into one; the group keeps the kind of its
    # earliest, longest span (email before phone before URL on ties).
    merged = []
    for start, end, order in sorted(spans, key=lambda s: (s[0], s[0] - s[1], s[2])):
        if merged and start < merged[-1][1]:
            last_start, last_end, last_order = merged[-1]
            merged[-1] = (last_start, max(last_end, end), last_order)
        else:
            merged.append((start, end, order))
    return merged


def _redact_once(text: str):
    spans = _merge(_find_spans(text))
    if not spans:
        return text, []
    parts = []
    blocked = []
    cursor = 0
    for start, end, order in spans:
        parts.append(text[cursor:start])
        parts.append(LINK_PLACEHOLDER if order == 2 else CONTACT_PLACEHOLDER)
        blocked.append(text[start:end])
        cursor = end
    parts.append(text[cursor:])
    return ''.join(parts), blocked


def filter_personal_info(content) -> FilterResult:
    """
    Redact contact details from ``content``.

    Email, phone and URL passes all scan the same text and their spans are
    merged before replacement, so one substitution can never hide another
    match. Redaction is repeated until nothing blockable is left, which
    makes the function idempotent on its own output.
    """
    if content is None:
        text = ''
    elif isinstance(content, str):
        text = content
    else:
        text = str(content)

    blocked_items: List[str] = []
    for _ in range(_MAX_ROUNDS):
        text, blocked = _redact_once(text)
        if not blocked:
            break
        blocked_items.extend(blocked)
    return FilterResult(filtered=text, blocked_items=blocked_items)
