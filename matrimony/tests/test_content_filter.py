import pytest

from matrimony.content_filter import (
    CONTACT_PLACEHOLDER,
    LINK_PLACEHOLDER,
    EMAIL_RE,
    filter_personal_info,
    is_safe_link,
)


def test_email_is_redacted():
    result = filter_personal_info("contact me at a@b.com")
    assert result.filtered == f"contact me at {CONTACT_PLACEHOLDER}"
    assert not EMAIL_RE.search(result.filtered)
    assert result.blocked_items == ["a@b.com"]
    assert result.contains_blocked_content


@pytest.mark.parametrize("text, phone", [
    ("call 555-123-4567 now", "555-123-4567"),
    ("call 5551234567", "5551234567"),
    ("ring (555) 123-4567 tonight", "(555) 123-4567"),
    ("my number is +1 555.123.4567", "+1 555.123.4567"),
])
def test_phone_numbers_are_redacted(text, phone):
    result = filter_personal_info(text)
    assert phone not in result.filtered
    assert CONTACT_PLACEHOLDER in result.filtered
    assert result.blocked_items == [phone]


@pytest.mark.parametrize("text", [
    "in 2024 we met",
    "I was born in 1994 and moved in 2010",
    "my profile id is 1234567890123456",
    "I am 5.8 feet tall",
    "family of 4, e.g. parents and siblings",
])
def test_numbers_and_abbreviations_pass_through(text):
    result = filter_personal_info(text)
    assert result.filtered == text
    assert result.blocked_items == []
    assert not result.contains_blocked_content


def test_external_links_use_their_own_placeholder():
    result = filter_personal_info("see https://instagram.com/someone and www.example.org")
    assert result.filtered == f"see {LINK_PLACEHOLDER} and {LINK_PLACEHOLDER}"
    assert result.blocked_items == ["https://instagram.com/someone", "www.example.org"]
    assert LINK_PLACEHOLDER != CONTACT_PLACEHOLDER


@pytest.mark.parametrize("url", [
    "https://shadikhanabadi.com/profile/42",
    "shadikhanabadi.com",
    "https://www.shadikhanabadi.com/help",
    "http://127.0.0.1:3000/messaging",
])
def test_platform_links_are_allowed(url):
    text = f"read {url} first"
    result = filter_personal_info(text)
    assert result.filtered == text
    assert result.blocked_items == []


def test_lookalike_domain_is_not_allowed():
    assert not is_safe_link("shadikhanabadi.com.evil.io")
    result = filter_personal_info("go to shadikhanabadi.com.evil.io")
    assert result.filtered == f"go to {LINK_PLACEHOLDER}"


def test_all_kinds_in_one_message_are_reported_in_order():
    text = "mail x.y@mail.co, call 555-123-4567 or visit evil.net"
    result = filter_personal_info(text)
    assert result.blocked_items == ["x.y@mail.co", "555-123-4567", "evil.net"]
    assert result.filtered == (
        f"mail {CONTACT_PLACEHOLDER}, call {CONTACT_PLACEHOLDER} or visit {LINK_PLACEHOLDER}"
    )


def test_url_containing_an_email_is_redacted_once():
    result = filter_personal_info("write to evil.com/contact?to=a@b.com please")
    assert result.filtered == f"write to {LINK_PLACEHOLDER} please"
    assert len(result.blocked_items) == 1


@pytest.mark.parametrize("bad_input", [None, "", 12345, "   ", "\x00\x01@@..", "@" * 500, "a" * 20000])
def test_malformed_input_never_raises(bad_input):
    result = filter_personal_info(bad_input)
    assert isinstance(result.filtered, str)
    assert isinstance(result.blocked_items, list)


@pytest.mark.parametrize("text", [
    "contact me at a@b.com",
    "call 555-123-4567 now",
    "a@b.com5551234567 evil.com/x",
    "https://evil.com/a@b.com 555 123 4567",
    "wa.me/15551234567",
    "nothing to see here",
    "[Contact information blocked] and [External link blocked]",
    "x@y.co.uk.evil.com.555-123-4567",
])
def test_filter_is_idempotent(text):
    once = filter_personal_info(text).filtered
    twice = filter_personal_info(once)
    assert twice.filtered == once
    assert twice.blocked_items == []
