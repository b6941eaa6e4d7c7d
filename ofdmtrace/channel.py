"""
Channel simulator.

Composes the impairment blocks over the whole concatenated transmit signal:
sample clock offset first, then carrier frequency offset, then (optionally)
additive noise.
"""

from typing import List, Sequence

import numpy as np

from .config import TraceConfig
from .impairments import ClockOffsetResampler, FrequencyShifter, GaussianNoise
from .logger import logger
from .processor import ProcessingBlock


class ChannelSimulator(ProcessingBlock):
    """
    Chain of processing blocks applied in order to a transmit signal.

    Attributes:
        blocks: The processing blocks, applied first to last.
    """

    def __init__(self, blocks: Sequence[ProcessingBlock]):
        self.blocks: List[ProcessingBlock] = list(blocks)

    @classmethod
    def from_config(cls, config: TraceConfig) -> "ChannelSimulator":
        """
        Builds the standard channel of a trace run.

        Args:
            config: Run configuration; uses the ppm offset, the frequency
                offset, the modem sample rate and the optional noise settings.

        Returns:
            A ChannelSimulator with resampler, mixer and optional noise blocks.
        """
        blocks: List[ProcessingBlock] = [
            ClockOffsetResampler(config.sample_clock_offset_ppm),
            FrequencyShifter(config.foff_hz, config.modem.fs),
        ]
        if config.channel_snr_db is not None:
            blocks.append(GaussianNoise(config.channel_snr_db, seed=config.noise_seed))
        return cls(blocks)

    def process(self, samples: np.ndarray) -> np.ndarray:
        out = np.asarray(samples, dtype=np.complex128)
        n_in = out.shape[0]
        for block in self.blocks:
            out = block(out)
        logger.info(
            f"Channel: {n_in} samples in, {out.shape[0]} out "
            f"({len(self.blocks)} blocks)."
        )
        return out
