"""
Bilingual full-text matching.

Text is compared after normalization: lowercased, trimmed, whitespace
collapsed and stripped of diacritics, so Vietnamese content matches whether
or not the query carries tone marks ("tiếng việt" == "tieng viet").

A record that has no text in the requested language is searched in the
default language instead, field by field.
"""
import unicodedata
from typing import NamedTuple

from .conf import resolve
from .records import localized
from .sorting import default_order_key

# "đ" is a distinct letter in Unicode, not "d" plus a combining mark.
_NON_DECOMPOSING = str.maketrans({"đ": "d", "Đ": "D"})


def normalize(text):
    """Return text lowercased, trimmed and stripped of diacritics."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.translate(_NON_DECOMPOSING))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


class MatchResult(NamedTuple):
    is_match: bool
    score: int


NO_MATCH = MatchResult(False, 0)


class SearchMatcher:
    """
    Substring matcher with weighted scoring.

    A record matches when every query token occurs in its title or body.
    The score counts every occurrence of every token, title occurrences
    weighted by ``title_weight`` and body occurrences by ``body_weight``.
    """

    def __init__(self, default_language=None, title_weight=None, body_weight=None,
                 min_query_length=None):
        self.default_language = resolve(default_language, "DEFAULT_LANGUAGE")
        self.title_weight = resolve(title_weight, "TITLE_WEIGHT")
        self.body_weight = resolve(body_weight, "BODY_WEIGHT")
        self.min_query_length = resolve(min_query_length, "MIN_QUERY_LENGTH")

    def tokens(self, query):
        return normalize(query).split()

    def is_active(self, query):
        """Whether query is long enough to filter anything."""
        normalized = normalize(query)
        return bool(normalized) and len(normalized) >= self.min_query_length

    def searchable_text(self, record, lang):
        """Return the normalized (title, body) of record in lang, with fallback."""
        title = body = ""
        if record.title_field:
            title = localized(record, record.title_field, lang, self.default_language)
        if record.body_field:
            body = localized(record, record.body_field, lang, self.default_language)
        return normalize(title), normalize(body)

    def match(self, record, query, lang=None):
        """
        Match a record against a query.

        An empty, whitespace-only or too-short query never matches; showing
        every record when no query is active is up to the caller.
        """
        if not self.is_active(query):
            return NO_MATCH
        return self.match_tokens(record, self.tokens(query), lang or self.default_language)

    def match_tokens(self, record, tokens, lang):
        title, body = self.searchable_text(record, lang)
        score = 0
        for token in tokens:
            in_title = title.count(token)
            in_body = body.count(token)
            if not in_title and not in_body:
                return NO_MATCH
            score += in_title * self.title_weight + in_body * self.body_weight
        return MatchResult(True, score)

    def rank(self, records, query, lang=None):
        """
        Return the matching records, best score first.

        Equal scores keep the feed order (pinned, newest, id).
        """
        scored = []
        for record in records:
            result = self.match(record, query, lang)
            if result.is_match:
                scored.append((record, result.score))
        scored.sort(key=lambda item: (-item[1], default_order_key(item[0])))
        return [record for record, _ in scored]
