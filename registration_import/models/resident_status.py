from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from .config_models import DEFAULT_RESIDENT_STATUS_VOCABULARY

__all__ = [
    "ResidentStatus",
]


class ResidentStatus(Enum):
    """Housing relationship of a registrant to the event's target community.

    - XINGLONG_D2: resident of Xinglong social housing district 2
    - WENSHAN: neighbouring Wenshan district resident
    - OTHER_TAIPEI_SOCIAL_HOUSING: resident of another Taipei social housing site
    - OTHER: none of the above, and the fallback for unrecognized answers
    """
    XINGLONG_D2 = "xinglongd2"
    WENSHAN = "wenshan"
    OTHER_TAIPEI_SOCIAL_HOUSING = "otherTaipeiSocialHousing"
    OTHER = "other"

    @classmethod
    def from_text(
        cls, text: str, vocabulary: Mapping[str, str] | None = None
    ) -> ResidentStatus:
        """Translate a free-text form answer by exact phrase match."""
        if vocabulary is None:
            vocabulary = DEFAULT_RESIDENT_STATUS_VOCABULARY
        value = vocabulary.get(text)
        if value is None:
            return cls.OTHER
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER
