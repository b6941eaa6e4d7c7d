"""
Symbol mapping for the modem data carriers.

This module handles the mapping of bit pairs to QPSK symbols and back. The
constellation is indexed by the symbol value, so that the same table is used
by the modulator, the hard-decision demodulator and the likelihood
calculations:

====== ======= =======
bits   index   point
====== ======= =======
0 0    0       1
0 1    1       j
1 0    2       -j
1 1    3       -1
====== ======= =======

The first bit of a pair is the most significant bit of the index.
"""

import numpy as np

from .logger import logger


def gray_code(n: int) -> np.ndarray:
    """
    Gray code sequence for ``n`` bits.

    Args:
        n: Number of bits.

    Returns:
        Array of integers representing the Gray code sequence.
    """
    if n < 0:
        raise ValueError("n must be non-negative")
    if n == 0:
        return np.array([0], dtype=int)

    i = np.arange(1 << n, dtype=int)
    return i ^ (i >> 1)


def gray_psk(order: int) -> np.ndarray:
    """
    M-PSK constellation with Gray mapping, indexed by symbol value.

    Points sit at phases 0, 2pi/M, ... in Gray code order, so that adjacent
    points differ in one bit. Values are rounded to remove the rounding residue
    of the complex exponential (exact 0, 1 and j for QPSK).

    Args:
        order: Modulation order (must be a power of 2).

    Returns:
        Complex array of constellation points.
    """
    k = int(np.log2(order))
    if 2**k != order:
        raise ValueError("Order must be power of 2 for psk")

    phases = np.arange(order) * 2 * np.pi / order
    constellation = np.zeros(order, dtype=complex)
    constellation[gray_code(k)] = np.round(np.exp(1j * phases), 12)
    return constellation + 0.0


QPSK_CONSTELLATION = gray_psk(4)


def bits_to_indices(bits: np.ndarray, bps: int = 2) -> np.ndarray:
    """
    Packs groups of ``bps`` bits into symbol indices, first bit as MSB.

    Args:
        bits: Bit array whose length is a multiple of ``bps``.
        bps: Bits per symbol.

    Returns:
        Integer array of symbol indices.
    """
    bits = np.asarray(bits, dtype=int)
    if bits.size % bps:
        raise ValueError(f"{bits.size} bits is not a whole number of {bps} bit symbols")

    weights = 1 << np.arange(bps - 1, -1, -1)
    return bits.reshape(-1, bps) @ weights


def indices_to_bits(indices: np.ndarray, bps: int = 2) -> np.ndarray:
    """
    Unpacks symbol indices into bits, MSB first.

    Args:
        indices: Integer symbol indices.
        bps: Bits per symbol.

    Returns:
        Flat uint8 bit array of length ``len(indices) * bps``.
    """
    indices = np.asarray(indices, dtype=int)
    shifts = np.arange(bps - 1, -1, -1)
    return ((indices[:, np.newaxis] >> shifts) & 1).astype(np.uint8).ravel()


def qpsk_mod(bits: np.ndarray) -> np.ndarray:
    """
    Maps bit pairs onto the QPSK constellation.

    Args:
        bits: Bit array of even length.

    Returns:
        Complex symbols, one per bit pair.
    """
    return QPSK_CONSTELLATION[bits_to_indices(bits, 2)]


def qpsk_demod(symbols: np.ndarray) -> np.ndarray:
    """
    Hard decision QPSK demodulation.

    Each symbol is assigned to the nearest constellation point, which for a
    unit QPSK constellation is the one with the largest real correlation.

    Args:
        symbols: Received complex symbols (any amplitude).

    Returns:
        Flat uint8 bit array, two bits per symbol.
    """
    symbols = np.asarray(symbols)
    metric = np.real(symbols[:, np.newaxis] * np.conj(QPSK_CONSTELLATION))
    indices = np.argmax(metric, axis=1)
    logger.debug(f"QPSK hard decisions for {symbols.size} symbols.")
    return indices_to_bits(indices, 2)
