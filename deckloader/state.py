from enum import IntEnum


class State(IntEnum):
    """
    Enum representing the learning state of a CardState object.
    """

    New = 0
    Learning = 1
    Mature = 2


__all__ = ["State"]
