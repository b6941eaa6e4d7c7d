"""
Soft decision metrics for the LDPC decoder.

Functions
---------
symbol_likelihood :
    Log likelihood of every constellation point for each received symbol.
bit_likelihood :
    Per-bit log likelihood ratios derived from symbol likelihoods.
"""

import numpy as np


def symbol_likelihood(
    rx_symbols: np.ndarray,
    constellation: np.ndarray,
    es_no: float,
    amps: np.ndarray,
    mean_amp: float,
) -> np.ndarray:
    """
    Symbol log likelihoods for a fading AWGN channel.

    For received symbol ``r_i`` with amplitude estimate ``a_i`` the metric
    of constellation point ``s_j`` is::

        -es_no * | r_i / mean_amp - a_i * s_j / mean_amp |**2

    Parameters
    ----------
    rx_symbols : ndarray
        Phase corrected received symbols. Shape: (N,).
    constellation : ndarray
        Constellation points indexed by symbol value. Shape: (M,).
    es_no : float
        Linear Es/No the metrics assume.
    amps : ndarray
        Amplitude estimate of each received symbol. Shape: (N,).
    mean_amp : float
        Mean amplitude tracked by the demodulator, used to normalise both the
        received symbols and the scaled constellation.

    Returns
    -------
    ndarray
        Log likelihoods, one row per symbol. Shape: (N, M).
    """
    rx_symbols = np.asarray(rx_symbols)
    amps = np.asarray(amps, dtype=float)
    if rx_symbols.shape != amps.shape:
        raise ValueError(
            f"{rx_symbols.shape[0]} symbols but {amps.shape[0]} amplitude estimates"
        )
    if mean_amp == 0:
        raise ValueError("mean_amp must be non-zero")

    expected = amps[:, np.newaxis] * np.asarray(constellation)[np.newaxis, :] / mean_amp
    err = rx_symbols[:, np.newaxis] / mean_amp - expected
    return -es_no * (err.real**2 + err.imag**2)


def bit_likelihood(symbol_likelihoods: np.ndarray) -> np.ndarray:
    """
    Maps symbol log likelihoods to bit log likelihoods.

    For each bit position (most significant first) the result is
    ``log(sum P(s | bit=1)) - log(sum P(s | bit=0))`` over the symbols ``s``,
    computed with the exact Jacobian logarithm. Positive values favour a 1.

    Parameters
    ----------
    symbol_likelihoods : ndarray
        Output of `symbol_likelihood`. Shape: (N, M), M a power of 2.

    Returns
    -------
    ndarray
        Bit log likelihoods. Shape: (N * log2(M),).
    """
    symbol_likelihoods = np.asarray(symbol_likelihoods, dtype=float)
    nsym, order = symbol_likelihoods.shape
    bps = int(np.log2(order))
    if 2**bps != order:
        raise ValueError(f"constellation size {order} is not a power of 2")

    indices = np.arange(order)
    out = np.empty((nsym, bps))
    for j in range(bps):
        mask = (indices >> (bps - 1 - j)) & 1
        num = np.logaddexp.reduce(symbol_likelihoods[:, mask == 1], axis=1)
        den = np.logaddexp.reduce(symbol_likelihoods[:, mask == 0], axis=1)
        out[:, j] = num - den
    return out.ravel()
