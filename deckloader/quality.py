from enum import IntEnum


class Quality(IntEnum):
    """
    Enum representing the four answer buttons offered when reviewing a card.

    SM-2 grades answers on a 0-5 scale. Only these four grades are offered as
    buttons, but the scheduler accepts any integer grade between 0 and 5.
    """

    Again = 0
    Hard = 2
    Good = 3
    Easy = 5


MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3


__all__ = ["Quality", "MIN_QUALITY", "MAX_QUALITY", "PASSING_QUALITY"]
