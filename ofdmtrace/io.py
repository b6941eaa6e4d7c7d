"""
Trace export and import.

Functions
---------
save_trace :
    Writes named arrays, as Octave text or as a MATLAB ``.mat`` file.
save_octave_text :
    Writes named 2D arrays in the Octave text format.
load_octave_text :
    Reads an Octave text file back into named arrays.
"""

from typing import Dict, Mapping, Optional

import numpy as np

from .logger import logger


def _format_real(x) -> str:
    return f"{x:.9g}"


def _format_complex(z) -> str:
    return f"({z.real:.9g},{z.imag:.9g})"


def save_octave_text(
    path: str, arrays: Mapping[str, np.ndarray], header: Optional[str] = None
) -> None:
    """
    Saves arrays in the Octave text format.

    Each array is written as::

        # name: <name>
        # type: matrix | complex matrix
        # rows: <rows>
        # columns: <columns>
         <row 0 values>
         ...

    followed by two blank lines. 1D arrays are written as a single row.

    Args:
        path: Output file path.
        arrays: Arrays by name, in the order they are written.
        header: Optional comment line written first.
    """
    with open(path, "w") as f:
        if header:
            f.write(f"# {header}\n")
        for name, value in arrays.items():
            value = np.asarray(value)
            if value.ndim < 2:
                value = value.reshape(1, -1)
            if value.ndim != 2:
                raise ValueError(f"'{name}' has {value.ndim} dimensions, only 2D arrays can be saved")

            is_complex = np.iscomplexobj(value)
            fmt = _format_complex if is_complex else _format_real
            rows, cols = value.shape
            f.write(f"# name: {name}\n")
            f.write(f"# type: {'complex matrix' if is_complex else 'matrix'}\n")
            f.write(f"# rows: {rows}\n")
            f.write(f"# columns: {cols}\n")
            for row in value:
                f.write(" " + " ".join(fmt(v) for v in row) + "\n")
            f.write("\n\n")
    logger.info(f"Saved {len(arrays)} arrays to {path}.")


def _parse_value(token: str):
    if token.startswith("("):
        re, im = token[1:-1].split(",")
        return complex(float(re), float(im))
    return float(token)


def load_octave_text(path: str) -> Dict[str, np.ndarray]:
    """
    Loads the matrices of an Octave text file.

    Only ``matrix`` and ``complex matrix`` entries are supported.

    Args:
        path: File written by `save_octave_text` or Octave's ``save -text``.

    Returns:
        Arrays by name, float64 or complex128 with their saved shape.
    """
    with open(path, "r") as f:
        lines = f.read().splitlines()

    out: Dict[str, np.ndarray] = {}
    i = 0
    while i < len(lines):
        line = lines[i].strip()
        i += 1
        if not line.startswith("# name:"):
            continue
        name = line.split(":", 1)[1].strip()
        meta = {}
        while i < len(lines) and lines[i].startswith("#"):
            key, _, val = lines[i][1:].partition(":")
            meta[key.strip()] = val.strip()
            i += 1

        kind = meta.get("type")
        if kind not in ("matrix", "complex matrix"):
            raise ValueError(f"'{name}': unsupported Octave type '{kind}'")
        rows, cols = int(meta["rows"]), int(meta["columns"])
        dtype = np.complex128 if kind == "complex matrix" else np.float64

        data = np.zeros((rows, cols), dtype=dtype)
        for r in range(rows):
            tokens = lines[i].split()
            i += 1
            if len(tokens) != cols:
                raise ValueError(f"'{name}' row {r} has {len(tokens)} values, expected {cols}")
            data[r] = [_parse_value(t) for t in tokens]
        out[name] = data
    return out


def save_trace(path: str, arrays: Mapping[str, np.ndarray], header: Optional[str] = None) -> None:
    """
    Saves a trace, choosing the format from the file extension.

    ``.mat`` files are written with `scipy.io.savemat`, anything else as
    Octave text.
    """
    if str(path).lower().endswith(".mat"):
        from scipy.io import savemat

        savemat(path, {name: np.asarray(value) for name, value in arrays.items()})
        logger.info(f"Saved {len(arrays)} arrays to {path}.")
    else:
        save_octave_text(path, arrays, header=header)
