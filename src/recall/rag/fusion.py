"""Result fusion across ranked channels (full-text plus one per semantic strategy).

Reciprocal Rank Fusion:
  score(d) = Σ weight_c / (k + rank_c(d))      k = 60, rank 1 = best

Weighted-score fusion:
  score(d) = Σ weight_c × norm_c(d)            norm = per-channel min-max

Items are merged by identity: the same messageId, otherwise the same
(document_path, chunk_index). Within one channel only the best-ranked entry
of an identity counts.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from recall.db.models import SearchHit

RRF_K = 60


@dataclass
class Channel:
    """One ranked list, best first.

    Attributes:
        channel_id: "fts" or a strategy id.
        hits: Ranked hits; index 0 is rank 1.
        weight: Multiplier applied to this channel's contribution.
        higher_is_better: False for bm25-style scores where lower is better.
    """

    channel_id: str
    hits: list[SearchHit]
    weight: float = 1.0
    higher_is_better: bool = True


@dataclass
class ChannelScore:
    channel_id: str
    rank: int
    score: float


@dataclass
class FusedHit:
    hit: SearchHit
    fused_score: float
    channel_scores: list[ChannelScore] = field(default_factory=list)

    @property
    def identity(self) -> str:
        return self.hit.identity

    @property
    def best_rank(self) -> int:
        return min(cs.rank for cs in self.channel_scores)


def _dedupe(hits: Sequence[SearchHit]) -> list[SearchHit]:
    seen: set[str] = set()
    unique: list[SearchHit] = []
    for hit in hits:
        if hit.identity in seen:
            continue
        seen.add(hit.identity)
        unique.append(hit)
    return unique


def _normalize(hits: Sequence[SearchHit], higher_is_better: bool) -> list[float]:
    if not hits:
        return []
    scores = [h.score for h in hits]
    lo, hi = min(scores), max(scores)
    if hi == lo:
        return [1.0] * len(scores)
    if higher_is_better:
        return [(s - lo) / (hi - lo) for s in scores]
    return [(hi - s) / (hi - lo) for s in scores]


def _sort_key(fused: FusedHit) -> tuple[float, int, str, str]:
    return (-fused.fused_score, fused.best_rank, fused.hit.document_path, fused.identity)


def fuse_results(
    channels: Sequence[Channel],
    method: str = "rrf",
    limit: int = 10,
    rrf_k: int = RRF_K,
) -> list[FusedHit]:
    """Merge *channels* into one list of at most *limit* hits, best first.

    When exactly one channel is supplied its hits pass through with their raw
    scores. Several channels are always fused, even if only one returned hits.

    Raises:
        ValueError: If *method* is not ``rrf`` or ``weighted_score``.
    """
    if method not in ("rrf", "weighted_score"):
        raise ValueError(f"Unknown fusion method '{method}'. Use 'rrf' or 'weighted_score'.")
    if limit < 1:
        return []

    ranked = [(c, _dedupe(c.hits)) for c in channels]
    ranked = [(c, hits) for c, hits in ranked if hits]
    if not ranked:
        return []

    if len(channels) == 1:
        channel, hits = ranked[0]
        return [
            FusedHit(
                hit=hit,
                fused_score=hit.score,
                channel_scores=[ChannelScore(channel.channel_id, rank, hit.score)],
            )
            for rank, hit in enumerate(hits[:limit], start=1)
        ]

    merged: dict[str, FusedHit] = {}
    for channel, hits in ranked:
        if method == "rrf":
            contributions = [channel.weight / (rrf_k + rank) for rank in range(1, len(hits) + 1)]
        else:
            contributions = [
                channel.weight * n for n in _normalize(hits, channel.higher_is_better)
            ]

        for rank, (hit, contribution) in enumerate(zip(hits, contributions), start=1):
            score = ChannelScore(channel.channel_id, rank, hit.score)
            existing = merged.get(hit.identity)
            if existing is None:
                merged[hit.identity] = FusedHit(
                    hit=hit, fused_score=contribution, channel_scores=[score]
                )
                continue
            if rank < existing.best_rank:
                existing.hit = hit
            existing.fused_score += contribution
            existing.channel_scores.append(score)

    return sorted(merged.values(), key=_sort_key)[:limit]
