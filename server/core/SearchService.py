"""Ranked full-text search over document titles and extracted text."""

import math
import re
from collections import Counter

from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document
from shared.models.errors import ValidationError
from shared.models.search import SearchHit

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
CANDIDATE_LIMIT = 200

TITLE_TOKEN_WEIGHT = 3.0
TITLE_SUBSTRING_WEIGHT = 1.5
EXACT_TITLE_BONUS = 5.0
TITLE_PHRASE_BONUS = 2.0
TEXT_SUBSTRING_WEIGHT = 0.5  # per occurrence inside a longer word

# BM25 saturation and length normalisation
K1 = 1.2
B = 0.75

_TOKEN_RE = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall((text or "").lower())


def _normalize(text: str) -> str:
    return " ".join(tokenize(text))


class SearchService:
    """Scores candidate documents against a free-text query.

    Per query term a document earns a title score (whole-token match beats a
    substring match) and a text score that saturates with the term frequency
    and is damped by text length relative to the candidate average. In the
    text, an occurrence inside a longer word counts at TEXT_SUBSTRING_WEIGHT
    of a whole-word occurrence. Each term
    is weighted by its rarity among the candidates, so specific terms count
    more than common ones. An exact title match and a title containing the
    whole query phrase earn fixed bonuses, which lets an exact title outrank
    incidental mentions deep in a long text.
    """

    def __init__(self, helper_config: HelperConfig, meta_client: MetaClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._meta_client = meta_client

    async def search(self, query: str, limit: int = DEFAULT_LIMIT) -> list[SearchHit]:
        """Rank documents for a query.

        Args:
            query (str): Free text; tokenized case-insensitively.
            limit (int): Maximum number of hits (1..MAX_LIMIT).

        Returns:
            list[SearchHit]: Hits with score > 0, best first; ties go to the newer document.

        Raises:
            ValidationError: Blank query or limit out of range (checked before any store access).
        """
        if not query or not query.strip():
            raise ValidationError("Query must not be blank", details={"parameter": "q"})
        if limit < 1 or limit > MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}", details={"parameter": "limit"})

        terms = list(dict.fromkeys(tokenize(query)))
        if not terms:
            # e.g. only punctuation, nothing can match
            self.logging.debug("Query '%s' has no searchable terms.", query)
            return []

        candidates = await self._meta_client.do_search_candidates(terms, CANDIDATE_LIMIT)
        hits = self.rank(query, terms, candidates)
        self.logging.debug("Search for %s: %d candidate(s), %d hit(s).", terms, len(candidates), len(hits))
        return hits[:limit]

    def rank(self, query: str, terms: list[str], documents: list[Document]) -> list[SearchHit]:
        if not documents:
            return []

        prepared = []
        for document in documents:
            title_tokens = tokenize(document.title)
            text_tokens = tokenize(document.full_text)
            prepared.append((document, title_tokens, Counter(text_tokens), len(text_tokens)))

        avg_len = sum(p[3] for p in prepared) / len(prepared) or 1.0
        n_docs = len(prepared)
        idf = {}
        for term in terms:
            df = sum(1 for doc, title_tokens, counts, _ in prepared if self._contains(term, doc.title, counts))
            idf[term] = math.log(1 + (n_docs - df + 0.5) / (df + 0.5))

        normalized_query = _normalize(query)
        hits: list[SearchHit] = []
        for document, title_tokens, counts, length in prepared:
            score = 0.0
            matched = []
            title_lower = document.title.lower()
            for term in terms:
                term_score = 0.0
                if term in title_tokens:
                    term_score += TITLE_TOKEN_WEIGHT
                elif term in title_lower:
                    term_score += TITLE_SUBSTRING_WEIGHT
                partial = sum(count for token, count in counts.items() if term != token and term in token)
                tf = counts.get(term, 0) + TEXT_SUBSTRING_WEIGHT * partial
                if tf:
                    term_score += tf / (tf + K1 * (1 - B + B * length / avg_len))
                if term_score:
                    matched.append(term)
                    score += term_score * idf[term]
            if not matched:
                continue

            normalized_title = _normalize(document.title)
            if normalized_title == normalized_query:
                score += EXACT_TITLE_BONUS
            elif normalized_query and normalized_query in normalized_title:
                score += TITLE_PHRASE_BONUS

            score *= len(matched) / len(terms)
            if score <= 0:
                continue
            hits.append(
                SearchHit(
                    document_id=document.id,
                    title=document.title,
                    created_at=document.created_at,
                    score=round(score, 4),
                    matched_terms=matched,
                )
            )

        hits.sort(key=lambda hit: hit.created_at, reverse=True)
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits

    @staticmethod
    def _contains(term: str, title: str, counts: Counter) -> bool:
        return term in title.lower() or any(term in token for token in counts)
