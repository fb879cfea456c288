"""
Consent cookie parsing and the request/response cookie storage.
"""

import json
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from urllib.parse import quote  # noqa: E402

from cookies import (  # noqa: E402
    ConsentGate,
    CookieStorage,
    delete_non_essential_cookies,
    get_cookie_consent,
    has_consent_for,
    needs_consent,
    parse_consent,
    set_cookie_consent,
)
from cryptic_config import CONSENT_COOKIE_NAME, PROGRESS_COOKIE_NAME  # noqa: E402


def storage_with_consent(**choices):
    consent = {'essential': True, 'functional': False, 'analytics': False,
               'marketing': False, 'timestamp': 1_700_000_000_000}
    consent.update(choices)
    return CookieStorage({CONSENT_COOKIE_NAME: quote(json.dumps(consent))})


def test_no_consent_cookie():
    storage = CookieStorage({})
    assert get_cookie_consent(storage) is None
    assert not has_consent_for(storage, 'functional')
    assert needs_consent(storage)
    assert not ConsentGate(storage).is_allowed()


def test_functional_consent_allows():
    storage = storage_with_consent(functional=True)
    assert ConsentGate(storage).is_allowed()
    assert not ConsentGate(storage, 'marketing').is_allowed()


def test_garbled_consent_is_treated_as_missing():
    assert parse_consent('{oops') is None
    assert parse_consent('[true]') is None
    assert parse_consent('') is None
    assert not ConsentGate(CookieStorage({CONSENT_COOKIE_NAME: 'garbage'})).is_allowed()


def test_consent_older_than_a_year_needs_renewal():
    storage = storage_with_consent(functional=True, timestamp=1_000)
    assert needs_consent(storage, now_ms=1_000 + 366 * 24 * 60 * 60 * 1000)
    assert not needs_consent(storage, now_ms=2_000)


def test_set_consent_is_visible_within_the_same_request():
    storage = CookieStorage({})
    consent = set_cookie_consent(storage, functional=True)
    assert consent['essential'] is True
    assert ConsentGate(storage).is_allowed()
    assert storage.dirty


def test_withdrawing_functional_consent_deletes_progress_cookie():
    storage = CookieStorage({PROGRESS_COOKIE_NAME: quote('[]')})
    set_cookie_consent(storage, functional=False)
    assert delete_non_essential_cookies(storage) == [PROGRESS_COOKIE_NAME]
    assert storage.get(PROGRESS_COOKIE_NAME) is None


def test_granting_consent_keeps_progress_cookie():
    storage = CookieStorage({PROGRESS_COOKIE_NAME: quote('[]')})
    set_cookie_consent(storage, functional=True)
    assert delete_non_essential_cookies(storage) == []
    assert storage.get(PROGRESS_COOKIE_NAME) == '[]'


def test_storage_unquotes_request_values():
    storage = CookieStorage({'name': quote('[{"a": 1}]', safe='')})
    assert storage.get('name') == '[{"a": 1}]'
    assert storage.get('missing') is None
