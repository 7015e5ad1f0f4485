"""
deckloader.progress
---------

This module defines the optional TqdmProgress progress sink.
"""

from deckloader.stage import DecodeStage

try:
    from tqdm import tqdm

    class TqdmProgress:
        """
        A progress sink that draws one progress bar per decode stage.

        Pass an instance as the `progress` argument of Decoder.decode and call
        `close()` when the decode is over:

            progress = TqdmProgress()
            try:
                deck = Decoder().decode(data, progress=progress)
            finally:
                progress.close()
        """

        def __init__(self, **tqdm_kwargs) -> None:
            self._tqdm_kwargs = tqdm_kwargs
            self._bar = None
            self._stage = None

        def __call__(self, stage: DecodeStage, percent: float) -> None:
            stage = DecodeStage(stage)
            if stage != self._stage:
                self.close()
                self._stage = stage
                self._bar = tqdm(
                    total=100,
                    desc=f"[{int(stage)}/{len(DecodeStage) - 1}] {stage.label}",
                    unit="%",
                    leave=stage == DecodeStage.Done,
                    **self._tqdm_kwargs,
                )

            self._bar.n = round(percent, 1)
            self._bar.refresh()

        def close(self) -> None:
            if self._bar is not None:
                self._bar.close()
                self._bar = None

except ImportError:

    class TqdmProgress:
        def __init__(self, *args, **kwargs) -> None:
            raise ImportError(
                'TqdmProgress is not installed.\nInstall it with: pip install "deckloader[progress]"'
            )


__all__ = ["TqdmProgress"]
