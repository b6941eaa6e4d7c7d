"""
Frame layout and the frame encoder driver.

A modem frame of ``bitsperframe`` bits is split into three contiguous fields::

    | unique word | text bits | coded block                       |
    | nuwbits     | txtbits   | coded_bits_per_frame              |
                              ^ codeword_bit_offset

The coded block is either an LDPC codeword (payload followed by parity) or,
with LDPC disabled, the payload written twice so the frame keeps its length.
On receive the codeword starts at symbol ``codeword_bit_offset / bps``.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .logger import logger
from .protocols import FecCodec, Modem
from .sequences import random_bits


@dataclass(frozen=True)
class FrameLayout:
    """
    Bit bookkeeping of one frame.

    Attributes:
        uw_bits: Unique word bits at the start of the frame.
        txt_bits: Auxiliary text bits after the unique word (sent as zeros).
        coded_bits: Bits of the coded block.
        bps: Bits per modem symbol.
        bits_per_frame: Total bits the modulator takes per frame.
    """

    uw_bits: int
    txt_bits: int
    coded_bits: int
    bps: int
    bits_per_frame: int

    def __post_init__(self):
        total = self.uw_bits + self.txt_bits + self.coded_bits
        if total != self.bits_per_frame:
            raise ValueError(
                f"unique word ({self.uw_bits}) + text ({self.txt_bits}) + coded "
                f"({self.coded_bits}) bits = {total}, modem frame has {self.bits_per_frame}"
            )
        if (self.uw_bits + self.txt_bits) % self.bps:
            raise ValueError(
                f"codeword bit offset {self.uw_bits + self.txt_bits} is not a whole "
                f"number of {self.bps} bit symbols"
            )
        if self.coded_bits % self.bps:
            raise ValueError(
                f"{self.coded_bits} coded bits are not a whole number of {self.bps} bit symbols"
            )
        if self.coded_bits % 2:
            raise ValueError(f"coded block of {self.coded_bits} bits cannot be split in halves")

    @classmethod
    def from_config(cls, config) -> "FrameLayout":
        """Builds the layout of a `TraceConfig`."""
        modem = config.modem
        return cls(
            uw_bits=modem.nuwbits,
            txt_bits=modem.txtbits,
            coded_bits=config.coded_bits_per_frame,
            bps=modem.bps,
            bits_per_frame=modem.bitsperframe,
        )

    @property
    def codeword_bit_offset(self) -> int:
        return self.uw_bits + self.txt_bits

    @property
    def codeword_symbol_offset(self) -> int:
        return self.codeword_bit_offset // self.bps

    @property
    def codeword_symbols(self) -> int:
        return self.coded_bits // self.bps

    @property
    def data_bits(self) -> int:
        """Payload bits per frame, half of the coded block."""
        return self.coded_bits // 2


def make_payload(nframes: int, data_bits: int, seed: int = 1) -> np.ndarray:
    """
    Generates the payload bits of a run.

    Returns:
        uint8 bits, one row per frame. Shape: (nframes, data_bits).
    """
    return random_bits(nframes * data_bits, seed=seed).reshape(nframes, data_bits)


class FrameEncoder:
    """
    Assembles and modulates test frames.

    Args:
        modem: The modulator, also the source of the unique word.
        layout: Frame bit bookkeeping.
        codec: LDPC codec; None sends the payload twice instead of payload
            and parity.
    """

    def __init__(self, modem: Modem, layout: FrameLayout, codec: Optional[FecCodec] = None):
        self.modem = modem
        self.layout = layout
        self.codec = codec

        if modem.tx_uw.shape[0] != layout.uw_bits:
            raise ValueError(
                f"modem unique word has {modem.tx_uw.shape[0]} bits, layout expects {layout.uw_bits}"
            )
        if codec is not None and (
            codec.codeword_length != layout.coded_bits
            or codec.data_bits_per_frame != layout.data_bits
        ):
            raise ValueError(
                f"codec ({codec.codeword_length},{codec.data_bits_per_frame}) does not fit "
                f"a {layout.coded_bits} bit coded block"
            )

    def assemble(self, payload: np.ndarray) -> np.ndarray:
        """
        Builds the bits of one frame.

        Args:
            payload: Payload bits. Shape: (coded_bits // 2,).

        Returns:
            Frame bits as uint8. Shape: (bits_per_frame,).
        """
        layout = self.layout
        payload = np.asarray(payload, dtype=np.uint8)
        if payload.shape != (layout.data_bits,):
            raise ValueError(f"expected {layout.data_bits} payload bits, got {payload.size}")

        if self.codec is not None:
            coded = np.concatenate([payload, self.codec.encode(payload)])
        else:
            coded = np.concatenate([payload, payload])

        bits = np.concatenate(
            [
                np.asarray(self.modem.tx_uw, dtype=np.uint8),
                np.zeros(layout.txt_bits, dtype=np.uint8),
                coded.astype(np.uint8),
            ]
        )
        if bits.shape[0] != layout.bits_per_frame:
            raise RuntimeError(
                f"assembled {bits.shape[0]} bits for a {layout.bits_per_frame} bit frame"
            )
        return bits

    def encode(self, payload: np.ndarray):
        """
        Assembles and modulates one frame.

        Returns:
            Tuple of (frame bits, transmit samples).
        """
        bits = self.assemble(payload)
        tx = self.modem.mod(bits)
        nsf = self.modem.config.samplesperframe
        if tx.shape[0] != nsf:
            raise RuntimeError(f"modulator returned {tx.shape[0]} samples, expected {nsf}")
        return bits, tx

    def encode_frames(self, payloads: np.ndarray):
        """
        Encodes one frame per payload row.

        Returns:
            Tuple of (frame bits, shape (nframes, bits_per_frame), and the
            concatenated transmit signal).
        """
        if self.codec is None:
            logger.warning("LDPC disabled, payload is sent twice in every frame.")
        bits, tx = zip(*(self.encode(p) for p in payloads))
        logger.info(f"Encoded {len(bits)} frames.")
        return np.stack(bits), np.concatenate(tx)
