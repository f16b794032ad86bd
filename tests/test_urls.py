import string
from urllib.parse import quote

import pytest

from gas_bridge.urls import build_tokenized_url, extract_token_param

BASE = "https://script.google.com/macros/s/abc/exec"


def test_build_tokenized_url_appends_token_query():
    assert build_tokenized_url(BASE, "tok123") == f"{BASE}?token=tok123"


def test_build_tokenized_url_uses_ampersand_when_base_has_query():
    assert build_tokenized_url(f"{BASE}?page=dashboard", "tok") == f"{BASE}?page=dashboard&token=tok"


def test_build_tokenized_url_keeps_full_urls_verbatim():
    full = "https://example.com/userCodeAppPanel?token=xyz&x=1"
    assert build_tokenized_url(BASE, full) == full
    assert build_tokenized_url(BASE, "http://example.com/?token=a") == "http://example.com/?token=a"


@pytest.mark.parametrize("raw", ["tok", "a b+c", "x/y?z=1&w", "%41"])
def test_build_tokenized_url_is_idempotent(raw):
    once = build_tokenized_url(BASE, raw)
    assert build_tokenized_url(BASE, once) == once


@pytest.mark.parametrize("raw", ["", None])
def test_build_tokenized_url_empty_input_yields_empty(raw):
    assert build_tokenized_url(BASE, raw) == ""


def test_build_tokenized_url_percent_encodes_reserved_characters():
    assert build_tokenized_url(BASE, "a b&c=d") == f"{BASE}?token=a%20b%26c%3Dd"


def test_extract_token_param_round_trips_printable_ascii():
    token = "".join(chr(code) for code in range(32, 127))
    url = f"{BASE}?token={quote(token, safe='')}"
    assert extract_token_param(url) == token


@pytest.mark.parametrize("token", list(string.punctuation) + ["plain", "with space", "100%", "a+b"])
def test_extract_token_param_round_trips_through_build(token):
    assert extract_token_param(build_tokenized_url(BASE, token)) == token


def test_extract_token_param_reads_token_among_other_params():
    url = "https://n-abc.googleusercontent.com/userCodeAppPanel?createOAuthDialog=true&token=s3cr3t&lib=1"
    assert extract_token_param(url) == "s3cr3t"


@pytest.mark.parametrize(
    "url",
    ["", None, "not a url", "/relative?token=abc", "https://example.com/?other=1", "https://example.com/?token="],
)
def test_extract_token_param_returns_empty_when_missing(url):
    assert extract_token_param(url) == ""
