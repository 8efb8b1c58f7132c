"""String similarity helpers for organisation name matching."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Sequence, Tuple

import jellyfish

from .helpers import fold_diacritics

if TYPE_CHECKING:
    from ..config.policies import NameNormalizationPolicy


_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

DEFAULT_LENGTH_RATIO_CUTOFF = 0.5


def _ordered_pair(text1: str, text2: str) -> Tuple[str, str]:
    """Return a deterministic ordering of two strings for cache keys."""

    return (text1, text2) if text1 <= text2 else (text2, text1)


class NameNormalizer:
    """Reduce names to a compact comparable form.

    The base form is lowercase ASCII with every non-alphanumeric character
    removed. When ``enabled`` the text is first tokenised so abbreviations can
    be expanded (``dept`` -> ``department``) and common filler words dropped
    before the tokens are joined back together. If dropping filler words would
    leave nothing, the expanded tokens are kept instead.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        replacements: Mapping[str, str] | None = None,
        common_words: Iterable[str] = (),
    ) -> None:
        self.enabled = enabled
        self.replacements = {
            key.lower(): value.lower() for key, value in (replacements or {}).items()
        }
        self.common_words = frozenset(word.lower() for word in common_words)
        self._memo: Dict[str, str] = {}

    @classmethod
    def from_policy(cls, policy: "NameNormalizationPolicy") -> "NameNormalizer":
        return cls(
            enabled=policy.enabled,
            replacements=policy.replacements,
            common_words=policy.remove_common_words,
        )

    def _expand(self, lowered: str) -> list[str]:
        for symbol, replacement in self.replacements.items():
            if symbol and not symbol.isalnum():
                lowered = lowered.replace(symbol, f" {replacement} ")
        tokens: list[str] = []
        for token in _NON_ALNUM_RE.split(lowered):
            if not token:
                continue
            expanded = self.replacements.get(token, token)
            tokens.extend(part for part in _NON_ALNUM_RE.split(expanded) if part)
        return tokens

    def normalize(self, text: str | None) -> str:
        if not text:
            return ""
        cached = self._memo.get(text)
        if cached is not None:
            return cached

        lowered = fold_diacritics(text).lower()
        if not self.enabled:
            normalized = _NON_ALNUM_RE.sub("", lowered)
        else:
            tokens = self._expand(lowered)
            kept = [token for token in tokens if token not in self.common_words]
            normalized = "".join(kept or tokens)
        self._memo[text] = normalized
        return normalized

    __call__ = normalize


def levenshtein_similarity(
    normalized_1: str,
    normalized_2: str,
    *,
    length_ratio_cutoff: float = DEFAULT_LENGTH_RATIO_CUTOFF,
) -> float:
    """Normalised edit-distance similarity for already-normalised strings.

    Pairs whose lengths differ by more than ``length_ratio_cutoff`` of the
    longer string score 0 without computing the distance.
    """

    if normalized_1 == normalized_2:
        return 1.0
    if not normalized_1 or not normalized_2:
        return 0.0
    max_length = max(len(normalized_1), len(normalized_2))
    if abs(len(normalized_1) - len(normalized_2)) / max_length > length_ratio_cutoff:
        return 0.0
    distance = jellyfish.levenshtein_distance(normalized_1, normalized_2)
    return 1.0 - distance / max_length


class SimilarityCache:
    """Pairwise similarity memo scoped to a single deduplication run."""

    def __init__(self) -> None:
        self._scores: Dict[Tuple[str, str], float] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._scores)

    def get(self, normalized_1: str, normalized_2: str) -> float | None:
        score = self._scores.get(_ordered_pair(normalized_1, normalized_2))
        if score is None:
            self.misses += 1
        else:
            self.hits += 1
        return score

    def put(self, normalized_1: str, normalized_2: str, score: float) -> None:
        self._scores[_ordered_pair(normalized_1, normalized_2)] = score

    def stats(self) -> Dict[str, int]:
        return {"entries": len(self._scores), "hits": self.hits, "misses": self.misses}


class StringSimilarity:
    """Normalise, compare and cache string similarity for one run."""

    def __init__(
        self,
        normalizer: NameNormalizer | None = None,
        cache: SimilarityCache | None = None,
        *,
        length_ratio_cutoff: float = DEFAULT_LENGTH_RATIO_CUTOFF,
    ) -> None:
        self.normalizer = normalizer or NameNormalizer(enabled=False)
        self.cache = cache if cache is not None else SimilarityCache()
        self.length_ratio_cutoff = length_ratio_cutoff

    def compare(self, text1: str | None, text2: str | None) -> float:
        normalized_1 = self.normalizer(text1)
        normalized_2 = self.normalizer(text2)
        cached = self.cache.get(normalized_1, normalized_2)
        if cached is not None:
            return cached
        score = levenshtein_similarity(
            normalized_1,
            normalized_2,
            length_ratio_cutoff=self.length_ratio_cutoff,
        )
        self.cache.put(normalized_1, normalized_2, score)
        return score

    def compare_values(
        self,
        value1: str | Sequence[str] | None,
        value2: str | Sequence[str] | None,
    ) -> float:
        """Compare strings or string sequences, reducing sequences to the best pair."""

        left = _as_strings(value1)
        right = _as_strings(value2)
        best = 0.0
        for text1 in left:
            for text2 in right:
                score = self.compare(text1, text2)
                if score > best:
                    best = score
                    if best >= 1.0:
                        return 1.0
        return best


def _as_strings(value: str | Sequence[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return [str(item) for item in value if item]


__all__ = [
    "NameNormalizer",
    "SimilarityCache",
    "StringSimilarity",
    "levenshtein_similarity",
]
