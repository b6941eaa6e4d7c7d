"""
Rate 1/2 LDPC codec used as the reference FEC collaborator.

The code is a hybrid repeat-accumulate (HRA) code. Its parity check matrix is
``H = [H1 | H2]`` where ``H1`` (parity x data) is a sparse matrix with a fixed
column weight built from a seeded generator, and ``H2`` is the dual diagonal
accumulator. Codewords are systematic, ``[data | parity]``, and encoding is a
running XOR of the ``H1`` syndrome:

    s = H1 @ data (mod 2),   parity[i] = parity[i-1] ^ s[i]

Decoding is edge based sum-product belief propagation in the ``phi`` domain,
stopped early as soon as every parity check is satisfied. Channel LLRs follow
the usual sign convention, positive favours a 0 bit.
"""

from typing import Optional, Tuple

import numpy as np

from .logger import logger

# |LLR| range kept inside phi() so that it stays finite
_PHI_MIN = 1e-10
_PHI_MAX = 40.0


def _phi(x: np.ndarray) -> np.ndarray:
    x = np.clip(x, _PHI_MIN, _PHI_MAX)
    return -np.log(np.tanh(x / 2.0))


class LDPCCode:
    """
    Hybrid repeat-accumulate LDPC code with systematic encoding.

    Attributes:
        codeword_length: Bits per codeword (n).
        data_bits_per_frame: Systematic bits per codeword (k).
        parity_bits: Parity bits / parity checks per codeword (n - k).
        max_iter: Default decoder iteration cap.
        h: Full parity check matrix, shape (parity_bits, codeword_length).
    """

    def __init__(
        self,
        data_bits: int = 112,
        parity_bits: Optional[int] = None,
        col_weight: int = 3,
        max_iter: int = 100,
        seed: int = 112,
    ):
        if parity_bits is None:
            parity_bits = data_bits
        if col_weight > parity_bits:
            raise ValueError(
                f"column weight {col_weight} exceeds the {parity_bits} parity checks"
            )

        self.data_bits_per_frame = data_bits
        self.parity_bits = parity_bits
        self.codeword_length = data_bits + parity_bits
        self.max_iter = max_iter

        self.h1 = self._build_h1(parity_bits, data_bits, col_weight, seed)
        h2 = np.eye(parity_bits, dtype=np.uint8)
        h2[np.arange(1, parity_bits), np.arange(parity_bits - 1)] = 1
        self.h = np.hstack([self.h1, h2])

        # edge lists for the decoder, one entry per non-zero of H
        self._edge_check, self._edge_var = np.nonzero(self.h)

        logger.debug(
            f"LDPC ({self.codeword_length},{self.data_bits_per_frame}) built with "
            f"{self._edge_var.size} edges (seed={seed})."
        )

    @staticmethod
    def _build_h1(rows: int, cols: int, col_weight: int, seed: int) -> np.ndarray:
        """Places col_weight ones per column on the least used rows."""
        rng = np.random.default_rng(seed)
        h1 = np.zeros((rows, cols), dtype=np.uint8)
        row_weight = np.zeros(rows, dtype=int)
        for j in range(cols):
            # primary key row weight, ties broken at random
            order = np.lexsort((rng.random(rows), row_weight))
            chosen = order[:col_weight]
            h1[chosen, j] = 1
            row_weight[chosen] += 1
        return h1

    def encode(self, data_bits: np.ndarray) -> np.ndarray:
        """
        Computes the parity bits of a systematic codeword.

        Args:
            data_bits: Payload bits. Shape: (data_bits_per_frame,).

        Returns:
            Parity bits as uint8. Shape: (parity_bits,).
        """
        data_bits = np.asarray(data_bits, dtype=np.int64)
        if data_bits.shape != (self.data_bits_per_frame,):
            raise ValueError(
                f"expected {self.data_bits_per_frame} data bits, got {data_bits.size}"
            )
        syndrome = (self.h1.astype(np.int64) @ data_bits) % 2
        return (np.cumsum(syndrome) % 2).astype(np.uint8)

    def parity_checks_satisfied(self, codeword: np.ndarray) -> int:
        """Number of rows of H satisfied by a hard decision codeword."""
        codeword = np.asarray(codeword, dtype=np.int64)
        syndrome = np.bincount(
            self._edge_check,
            weights=codeword[self._edge_var],
            minlength=self.parity_bits,
        )
        return int(np.sum(syndrome.astype(np.int64) % 2 == 0))

    def decode(
        self, llr: np.ndarray, max_iter: Optional[int] = None
    ) -> Tuple[np.ndarray, int, int]:
        """
        Sum-product decoding of one codeword.

        Args:
            llr: Channel log likelihood ratios, positive favours 0.
                Shape: (codeword_length,).
            max_iter: Iteration cap, defaults to ``self.max_iter``.

        Returns:
            Tuple of (decoded codeword bits as uint8, number of satisfied
            parity checks, iterations run).
        """
        llr = np.asarray(llr, dtype=np.float64)
        if llr.shape != (self.codeword_length,):
            raise ValueError(f"expected {self.codeword_length} LLRs, got {llr.size}")
        if max_iter is None:
            max_iter = self.max_iter

        edge_check, edge_var = self._edge_check, self._edge_var
        nchecks = self.parity_bits

        v2c = llr[edge_var].copy()
        hard = (llr < 0).astype(np.uint8)
        checks = self.parity_checks_satisfied(hard)
        iterations = 0

        while checks < nchecks and iterations < max_iter:
            iterations += 1

            # check node update, excluding each edge's own message
            mag = _phi(np.abs(v2c))
            negative = (v2c < 0).astype(np.int64)
            mag_sum = np.bincount(edge_check, weights=mag, minlength=nchecks)
            neg_count = np.bincount(edge_check, weights=negative, minlength=nchecks)
            sign = 1 - 2 * ((neg_count[edge_check].astype(np.int64) - negative) % 2)
            c2v = sign * _phi(mag_sum[edge_check] - mag)

            # variable node update
            total = llr + np.bincount(edge_var, weights=c2v, minlength=self.codeword_length)
            v2c = total[edge_var] - c2v

            hard = (total < 0).astype(np.uint8)
            checks = self.parity_checks_satisfied(hard)

        return hard, checks, iterations
