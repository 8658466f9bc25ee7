# attendance_monitor/services/alias_merge.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from attendance_monitor.core.logging import get_logger
from attendance_monitor.schemas.course import (
    AliasMapping,
    AliasSuggestion,
    MergeOrigin,
    ParticipantIdentity,
)
from attendance_monitor.services.name_similarity import (
    HIGH_CONFIDENCE_THRESHOLD,
    SUGGESTION_THRESHOLD,
    participant_similarity,
)

logger = get_logger("services.alias_merge")


class DetectionStatus(str, Enum):
    UNEXAMINED = "unexamined"
    SUGGESTED_TARGET = "suggested_target"
    ABSORBED = "absorbed"


class MergeResult(BaseModel):
    participants: list[ParticipantIdentity] = Field(
        ...,
        description="Live roster after merging, sorted by master_order.",
    )
    mappings: list[AliasMapping] = Field(default_factory=list)


@dataclass
class _Slot:
    identity: ParticipantIdentity
    absorbed_into: Optional[int] = None

    @property
    def live(self) -> bool:
        return self.absorbed_into is None


def detect_aliases(roster: Sequence[ParticipantIdentity]) -> List[AliasSuggestion]:
    """
    Propose merges of near-duplicate identities.

    Rules
    -----
    1) The organizer is never a target nor a candidate.
    2) Identities are examined in roster order; each one is compared with
       every later identity that has not been absorbed yet.
    3) Candidates scoring >= 0.55 are kept, best first.
    4) If the best score is >= 0.80 the suggestion is an auto-merge: the
       target and all its candidates are settled and not offered again in
       this pass.
    """
    status = [DetectionStatus.UNEXAMINED] * len(roster)
    suggestions: List[AliasSuggestion] = []

    for i, target in enumerate(roster):
        if target.is_organizer or status[i] is not DetectionStatus.UNEXAMINED:
            continue

        candidates: List[tuple[int, float]] = []
        for j in range(i + 1, len(roster)):
            other = roster[j]
            if other.is_organizer or status[j] is DetectionStatus.ABSORBED:
                continue

            score = participant_similarity(
                target.primary_name, target.email, other.primary_name, other.email
            )
            if score >= SUGGESTION_THRESHOLD:
                candidates.append((j, score))

        if not candidates:
            continue

        # stable sort keeps roster order between equal scores
        candidates.sort(key=lambda c: c[1], reverse=True)
        best = candidates[0][1]
        suggestion = AliasSuggestion(
            participant_id=target.id,
            main_name=target.primary_name,
            suggested_aliases=[roster[j].primary_name for j, _ in candidates],
            similarity_scores=[score for _, score in candidates],
            auto_merge=best >= HIGH_CONFIDENCE_THRESHOLD,
            confidence=best,
        )
        suggestions.append(suggestion)

        if suggestion.auto_merge:
            status[i] = DetectionStatus.SUGGESTED_TARGET
            for j, _ in candidates:
                status[j] = DetectionStatus.ABSORBED

    logger.info(
        "Alias detection: %d suggestion(s), %d auto-merge",
        len(suggestions),
        sum(1 for s in suggestions if s.auto_merge),
    )
    return suggestions


def _find_live_by_name(arena: List[_Slot], name: str, exclude: int) -> Optional[int]:
    for index, slot in enumerate(arena):
        if index == exclude or not slot.live or slot.identity.is_organizer:
            continue
        if slot.identity.primary_name == name:
            return index
    return None


def _fold(arena: List[_Slot], target_index: int, source_index: int) -> None:
    target = arena[target_index].identity
    source = arena[source_index].identity

    for name in source.aliases:
        if name not in target.aliases:
            target.aliases.append(name)
    if source.primary_name not in target.aliases:
        target.aliases.append(source.primary_name)

    target.days_present = sorted(set(target.days_present) | set(source.days_present))

    if not target.email and source.email:
        target.email = source.email

    arena[source_index].absorbed_into = target_index


def apply_alias_mappings(
    roster: Sequence[ParticipantIdentity],
    suggestions: Iterable[AliasSuggestion],
    *,
    force: bool = False,
) -> MergeResult:
    """
    Fold suggested aliases into their target identities.

    Works on deep copies; the input roster is left untouched. Suggestions
    that are not auto-merges are skipped unless `force` is set, and within
    a suggestion only candidates scoring >= 0.80 are folded (all of them
    when forced). A suggestion whose target was itself absorbed earlier is
    ignored.

    Returns
    -------
    MergeResult
        Surviving identities sorted by master_order, plus one AliasMapping per
        suggestion that folded at least one identity.
    """
    arena = [_Slot(identity=identity.model_copy(deep=True)) for identity in roster]
    by_id = {slot.identity.id: index for index, slot in enumerate(arena)}
    origin = MergeOrigin.MANUAL if force else MergeOrigin.AUTO
    mappings: List[AliasMapping] = []

    for suggestion in suggestions:
        if not force and not suggestion.auto_merge:
            continue

        target_index = by_id.get(suggestion.participant_id)
        if target_index is None or not arena[target_index].live:
            continue

        target = arena[target_index].identity
        merged_names = [target.primary_name]

        for alias_name, score in zip(suggestion.suggested_aliases, suggestion.similarity_scores):
            if not force and score < HIGH_CONFIDENCE_THRESHOLD:
                continue

            source_index = _find_live_by_name(arena, alias_name, exclude=target_index)
            if source_index is None:
                continue

            merged_names.append(arena[source_index].identity.primary_name)
            _fold(arena, target_index, source_index)

        if len(merged_names) == 1:
            continue

        mappings.append(
            AliasMapping(
                participant_id=target.id,
                primary_name=target.primary_name,
                merged_names=merged_names,
                merged_by=origin,
                confidence=suggestion.confidence,
            )
        )

    participants = sorted(
        (slot.identity for slot in arena if slot.live),
        key=lambda identity: identity.master_order,
    )
    logger.info(
        "Alias merge: %d -> %d identities (%d mapping(s))",
        len(arena),
        len(participants),
        len(mappings),
    )
    return MergeResult(participants=participants, mappings=mappings)


def merge_identities(
    roster: Sequence[ParticipantIdentity],
    target_id: str,
    source_ids: Sequence[str],
) -> MergeResult:
    """
    Manually merge the identities `source_ids` into `target_id`.

    Raises LookupError for unknown ids and ValueError when the organizer is
    involved or the target is listed among its own sources.
    """
    if not source_ids:
        raise ValueError("At least one participant to merge is required")

    by_id = {identity.id: identity for identity in roster}

    missing = [pid for pid in [target_id, *source_ids] if pid not in by_id]
    if missing:
        raise LookupError(f"Unknown participant id(s): {', '.join(missing)}")

    target = by_id[target_id]
    sources = [by_id[pid] for pid in source_ids]

    if target.is_organizer or any(source.is_organizer for source in sources):
        raise ValueError("The organizer cannot be merged with other participants")
    if target_id in source_ids:
        raise ValueError("A participant cannot be merged into itself")

    suggestion = AliasSuggestion(
        participant_id=target.id,
        main_name=target.primary_name,
        suggested_aliases=[source.primary_name for source in sources],
        similarity_scores=[1.0] * len(sources),
        auto_merge=True,
        confidence=1.0,
    )
    return apply_alias_mappings(roster, [suggestion], force=True)
