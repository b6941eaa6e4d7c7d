"""
Test bit sequence generation.

This module provides the bit sequences a trace run is built from:
- Random payload bits (uniform distribution, seeded).
- Pseudo-Random Binary Sequences (PRBS) using LFSRs, used for fixed patterns
  such as the modem pilot signs.
"""

from typing import Optional

import numpy as np


def random_bits(length: int, seed: Optional[int] = None) -> np.ndarray:
    """
    Generates a sequence of random bits (0s and 1s).

    Args:
        length: Length of the sequence to generate.
        seed: Random seed for reproducibility.

    Returns:
        Array of bits (0s and 1s) with dtype uint8.
    """
    rng = np.random.default_rng(seed)
    return rng.integers(0, 2, size=length, dtype=np.uint8)


def prbs(length: int, seed: int = 0x7F, order: int = 7) -> np.ndarray:
    """
    Generates a Pseudo-Random Binary Sequence (PRBS).

    Args:
        length: Length of the sequence to generate.
        seed: Initial state of the shift register, must be non-zero.
        order: Order of the PRBS (e.g., 7 for PRBS7).

    Returns:
        Array of bits (0s and 1s) with dtype uint8.
    """
    # Middle term k of the ITU polynomial x^order + x^k + 1
    taps = {7: 6, 9: 5, 11: 9, 15: 14, 23: 18, 31: 28}

    if order not in taps:
        raise ValueError(
            f"Unsupported PRBS order: {order}. Supported: {list(taps.keys())}"
        )
    state = seed & ((1 << order) - 1)
    if state == 0:
        raise ValueError("PRBS seed must have at least one bit set in the register")

    # s[i + order] = s[i] ^ s[i + order - k]
    tap = order - taps[order]

    seq = np.zeros(length, dtype=np.uint8)
    for i in range(length):
        seq[i] = state & 1
        fb = (state ^ (state >> tap)) & 1
        state = (state >> 1) | (fb << (order - 1))

    return seq
