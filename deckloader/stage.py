from enum import IntEnum


class DecodeStage(IntEnum):
    """
    Enum representing the ordered stages of decoding a package.
    """

    Read = 0
    Unpack = 1
    LocateStore = 2
    LoadEngine = 3
    OpenStore = 4
    Query = 5
    Done = 6

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    DecodeStage.Read: "Reading file",
    DecodeStage.Unpack: "Unpacking archive",
    DecodeStage.LocateStore: "Locating collection and media",
    DecodeStage.LoadEngine: "Loading database engine",
    DecodeStage.OpenStore: "Opening collection",
    DecodeStage.Query: "Reading notes",
    DecodeStage.Done: "Done",
}


__all__ = ["DecodeStage"]
