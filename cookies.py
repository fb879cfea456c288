"""
Cookie consent and cookie-backed storage.

The consent cookie records which optional cookie categories the visitor has
accepted. Functional cookies (puzzle progress) may only be read or written
while the "functional" category is accepted.

CookieStorage reads from the incoming request's cookies and queues writes
that are applied to the outgoing response, so a value set earlier in a
request is visible to later reads in the same request.
"""

import json
import time
from urllib.parse import quote, unquote

from cryptic_config import (
    CONSENT_CATEGORIES,
    CONSENT_COOKIE_NAME,
    CONSENT_EXPIRY_DAYS,
    FUNCTIONAL_COOKIES,
)

_DAY_SECONDS = 24 * 60 * 60


def _now_ms():
    return int(time.time() * 1000)


class CookieStorage:
    """get/set/delete over request cookies, flushed to a response by apply()."""

    def __init__(self, cookies):
        self._cookies = cookies
        self._pending = {}  # name -> (value or None for delete, days)

    def get(self, name):
        if name in self._pending:
            return self._pending[name][0]
        raw = self._cookies.get(name)
        if raw is None:
            return None
        return unquote(raw)

    def set(self, name, value, days=30):
        self._pending[name] = (value, days)
        return True

    def delete(self, name):
        self._pending[name] = (None, 0)

    @property
    def dirty(self):
        return bool(self._pending)

    def apply(self, response):
        for name, (value, days) in self._pending.items():
            if value is None:
                response.delete_cookie(name, path='/')
            else:
                response.set_cookie(
                    name, quote(value, safe=''),
                    max_age=int(days * _DAY_SECONDS),
                    path='/', samesite='Strict',
                )
        self._pending.clear()
        return response


def parse_consent(raw):
    """Parse a consent cookie value. Returns a dict or None if absent/garbled."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    consent = {category: bool(data.get(category, False)) for category in CONSENT_CATEGORIES}
    timestamp = data.get('timestamp')
    consent['timestamp'] = timestamp if isinstance(timestamp, (int, float)) else 0
    return consent


def get_cookie_consent(storage):
    return parse_consent(storage.get(CONSENT_COOKIE_NAME))


def set_cookie_consent(storage, functional=False, analytics=False, marketing=False):
    """Record the visitor's choice. Essential cookies are always accepted."""
    consent = {
        'essential': True,
        'functional': bool(functional),
        'analytics': bool(analytics),
        'marketing': bool(marketing),
        'timestamp': _now_ms(),
    }
    storage.set(CONSENT_COOKIE_NAME, json.dumps(consent), CONSENT_EXPIRY_DAYS)
    return consent


def has_consent_for(storage, category):
    consent = get_cookie_consent(storage)
    if not consent:
        return False
    return consent.get(category, False)


def needs_consent(storage, now_ms=None):
    """True when no consent is recorded or the recorded choice is over a year old."""
    consent = get_cookie_consent(storage)
    if not consent:
        return True
    now_ms = _now_ms() if now_ms is None else now_ms
    one_year_ago = now_ms - CONSENT_EXPIRY_DAYS * _DAY_SECONDS * 1000
    return consent['timestamp'] < one_year_ago


def delete_non_essential_cookies(storage):
    """Drop functional cookies once functional consent has been withdrawn."""
    consent = get_cookie_consent(storage)
    if not consent or consent['functional']:
        return []
    for name in FUNCTIONAL_COOKIES:
        storage.delete(name)
    return list(FUNCTIONAL_COOKIES)


class ConsentGate:
    """Answers "may this category be persisted right now" from the consent cookie."""

    def __init__(self, storage, category='functional'):
        self.storage = storage
        self.category = category

    def is_allowed(self):
        return has_consent_for(self.storage, self.category)
