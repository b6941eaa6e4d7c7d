"""
Pre-sized trace of every intermediate array of a run.

All buffers are allocated once from the run configuration. Per-frame entries
hold one fixed size block per frame; stream entries (the demod input) are
appended to and exported up to their fill level. Every write is bounds
checked, so a miscounted block raises instead of silently overrunning.

Entry names, shapes and element order match the arrays the comparison
scripts expect: row-major within a frame, frames concatenated.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from .config import TraceConfig
from .frames import FrameLayout


@dataclass
class TraceEntry:
    """
    One named buffer of the trace.

    Attributes:
        name: Name the array is exported under.
        data: Flat pre-allocated storage.
        shape: Export shape, or None to export ``(1, fill)`` of a stream entry.
        block: Elements per frame for per-frame entries, 0 for other entries.
        fill: Elements written so far to a stream entry.
    """

    name: str
    data: np.ndarray
    shape: Optional[Tuple[int, int]] = None
    block: int = 0
    fill: int = 0

    @property
    def capacity(self) -> int:
        return self.data.shape[0]

    def exported(self) -> np.ndarray:
        if self.shape is None:
            return self.data[: self.fill].reshape(1, self.fill)
        return self.data.reshape(self.shape)


class TraceLog:
    """
    Named trace buffers of one run, sized from its configuration.

    Args:
        config: The run configuration.
    """

    def __init__(self, config: TraceConfig):
        self.config = config
        c = config.modem
        layout = FrameLayout.from_config(config)
        n = config.nframes
        row = c.m + c.ncp
        ndata = c.rowsperframe * c.nc
        order = 2**c.bps
        self.nframes = n
        self._entries: Dict[str, TraceEntry] = {}

        cplx, real, ints = np.complex128, np.float64, np.int64

        self._add("pilot_samples", cplx, (1, row))
        self._frame("tx_bits_log", ints, c.bitsperframe, (1, c.bitsperframe * n))
        self._frame("tx_log", cplx, c.samplesperframe, (1, c.samplesperframe * n))
        self._add("rx_log", cplx, (1, c.samplesperframe * n))
        self._stream("rxbuf_in_log", cplx, c.max_samplesperframe * n)
        self._frame("rxbuf_log", cplx, c.nrxbuf, (1, c.nrxbuf * n))
        self._frame("rx_sym_log", cplx, (c.ns + 3) * (c.nc + 2), ((c.ns + 3) * n, c.nc + 2))
        self._frame("phase_est_pilot_log", real, ndata, (c.rowsperframe * n, c.nc))
        self._frame("rx_amp_log", real, ndata, (1, ndata * n))
        self._frame("foff_hz_log", real, 1, (n, 1))
        self._frame("timing_est_log", ints, 1, (n, 1))
        self._frame("timing_valid_log", ints, 1, (n, 1))
        self._frame("timing_mx_log", real, 1, (n, 1))
        self._frame("coarse_foff_est_hz_log", real, 1, (n, 1))
        self._frame("sample_point_log", ints, 1, (n, 1))
        self._frame("rx_np_log", cplx, ndata, (1, ndata * n))
        self._frame("rx_bits_log", ints, c.bitsperframe, (1, c.bitsperframe * n))
        nsym_lik = layout.codeword_symbols * order
        self._frame("symbol_likelihood_log", real, nsym_lik, (nsym_lik * n, 1))
        self._frame("bit_likelihood_log", real, layout.coded_bits, (layout.coded_bits * n, 1))
        self._frame("detected_data_log", ints, layout.coded_bits, (1, layout.coded_bits * n))
        self._frame("sig_var_log", real, 1, (n, 1))
        self._frame("noise_var_log", real, 1, (n, 1))
        self._frame("mean_amp_log", real, 1, (n, 1))
        self._frame("nin_log", ints, 1, (n, 1))
        self._frame("lnew_log", ints, 1, (n, 1))
        self._frame("parity_check_count_log", ints, 1, (n, 1))
        self._frame("ldpc_iter_log", ints, 1, (n, 1))
        self._frame("bit_errors_log", ints, 1, (n, 1))

    def _add(self, name, dtype, shape):
        self._entries[name] = TraceEntry(name, np.zeros(shape[0] * shape[1], dtype=dtype), shape)

    def _frame(self, name, dtype, block, shape):
        self._add(name, dtype, shape)
        self._entries[name].block = block

    def _stream(self, name, dtype, capacity):
        self._entries[name] = TraceEntry(name, np.zeros(capacity, dtype=dtype))

    def _entry(self, name: str) -> TraceEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise KeyError(f"no trace entry named '{name}'") from None

    def set(self, name: str, values) -> None:
        """Writes the start of a whole entry, the rest stays zero."""
        entry = self._entry(name)
        values = np.ravel(values)
        if values.shape[0] > entry.capacity:
            raise RuntimeError(
                f"{values.shape[0]} values overflow trace entry '{name}' of {entry.capacity}"
            )
        entry.data[: values.shape[0]] = values

    def record(self, name: str, frame: int, values) -> None:
        """Writes the block of one frame."""
        entry = self._entry(name)
        if not entry.block:
            raise RuntimeError(f"trace entry '{name}' is not recorded per frame")
        if not 0 <= frame < self.nframes:
            raise RuntimeError(f"frame {frame} outside trace of {self.nframes} frames")
        values = np.ravel(values)
        if values.shape[0] != entry.block:
            raise RuntimeError(
                f"trace entry '{name}' takes {entry.block} values per frame, got {values.shape[0]}"
            )
        start = frame * entry.block
        entry.data[start : start + entry.block] = values

    def append(self, name: str, values) -> None:
        """Appends to a stream entry."""
        entry = self._entry(name)
        if entry.shape is not None:
            raise RuntimeError(f"trace entry '{name}' is not a stream")
        values = np.ravel(values)
        end = entry.fill + values.shape[0]
        if end > entry.capacity:
            raise RuntimeError(
                f"trace entry '{name}' full: {entry.fill} + {values.shape[0]} > {entry.capacity}"
            )
        entry.data[entry.fill : end] = values
        entry.fill = end

    def __getitem__(self, name: str) -> np.ndarray:
        return self._entry(name).exported()

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def arrays(self, suffix: str = "") -> Dict[str, np.ndarray]:
        """All entries in export order and shape, names ending in ``suffix``."""
        return {name + suffix: entry.exported() for name, entry in self._entries.items()}
