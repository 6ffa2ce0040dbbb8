# stats.py
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from sole_ble.config import CHANNELS, CHANNEL_LABELS
from sole_ble.errors import EmptySession
from sole_ble.models import PressureSample


def round_half_up(num: int, den: int) -> int:
    """num/den rounded to nearest, halves up; exact for non-negative integers."""
    return (2 * num + den) // (2 * den)


@dataclass(frozen=True)
class Averages:
    channels: Tuple[int, ...]
    overall_mean: int
    max_index: int
    max_value: int
    min_value: int
    sample_count: int

    @property
    def max_label(self) -> str:
        return CHANNEL_LABELS[self.max_index]

    def to_json(self) -> dict:
        return {
            "channels": list(self.channels),
            "labels": list(CHANNEL_LABELS),
            "overall_mean": self.overall_mean,
            "max_point": {"index": self.max_index, "label": self.max_label, "value": self.max_value},
            "min_value": self.min_value,
            "samples": self.sample_count,
        }


def compute_averages(samples: Sequence[PressureSample]) -> Averages:
    """
    Per-channel rounded mean over all samples, the mean of those means, and the
    argmax channel (first index wins on ties). Raises EmptySession on no samples.
    """
    n = len(samples)
    if n == 0:
        raise EmptySession("no samples collected")

    sums: List[int] = [0] * CHANNELS
    for s in samples:
        for i, v in enumerate(s.values):
            sums[i] += v

    channels = tuple(round_half_up(total, n) for total in sums)
    max_value = max(channels)
    return Averages(
        channels=channels,
        overall_mean=round_half_up(sum(channels), CHANNELS),
        max_index=channels.index(max_value),
        max_value=max_value,
        min_value=min(channels),
        sample_count=n,
    )
