from museumquest.domain.models.base import (
    AggregateRoot,
    DomainEvent,
    DomainValidationError,
    Entity,
)
from museumquest.domain.models.leaderboard import LeaderboardEntry, parse_entries, sort_entries
from museumquest.domain.models.progress import (
    QuestProgress,
    hint_key,
    progress_record_from_fields,
    progress_record_to_fields,
)
from museumquest.domain.models.quest import (
    DateRange,
    Hint,
    HintDisplayMode,
    Prize,
    Quest,
    QuestArtefact,
    QuestType,
    ScheduleStatus,
)
from museumquest.domain.models.user import CompletedQuest, UserCollection

__all__ = [
    "AggregateRoot",
    "CompletedQuest",
    "DateRange",
    "DomainEvent",
    "DomainValidationError",
    "Entity",
    "Hint",
    "HintDisplayMode",
    "LeaderboardEntry",
    "Prize",
    "Quest",
    "QuestArtefact",
    "QuestProgress",
    "QuestType",
    "ScheduleStatus",
    "UserCollection",
    "hint_key",
    "parse_entries",
    "progress_record_from_fields",
    "progress_record_to_fields",
    "sort_entries",
]
