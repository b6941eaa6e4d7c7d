"""Configuration models for the OFDM trace harness.

Two immutable configuration objects are built once at startup and passed by
reference to every component:

- ``ModemConfig`` holds the modem geometry and estimator constants, and
  exposes the derived frame sizes the drivers need (samples per frame,
  receive buffer length, unique word length, ...).
- ``TraceConfig`` holds the parameters of one trace run (number of frames,
  channel impairments, LDPC settings, receive mode) and embeds the
  ``ModemConfig`` it runs against.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# scale from 16 bit reference file samples back to floats
DEFAULT_RX_FILE_SCALE = 2e5 * 1.1491 / 2.0


class RxMode(str, Enum):
    """
    Source of the samples fed to the frame decoder, and how the receive
    buffer starts.

    CHANNEL_FRONT_LOADED primes the receive buffer with the start of the
    channel output, so the first frame is demodulated with ideal timing.
    CHANNEL and REFERENCE_FILE start from an empty buffer and feed the
    stream from its first sample.
    """

    CHANNEL = "channel"
    CHANNEL_FRONT_LOADED = "channel_front_loaded"
    REFERENCE_FILE = "reference_file"

    @property
    def primes_rxbuf(self) -> bool:
        return self is RxMode.CHANNEL_FRONT_LOADED


class ModemConfig(BaseModel):
    """Geometry and estimator constants of the OFDM modem.

    Stored fields mirror the modem's configuration readback; values that are
    derived from them are exposed as read-only properties.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tx_centre: float = Field(1500.0, gt=0, description="TX centre frequency in Hz")
    rx_centre: float = Field(1500.0, gt=0, description="RX centre frequency in Hz")
    fs: float = Field(8000.0, gt=0, description="Sample rate in Hz")
    ts: float = Field(0.018, gt=0, description="Symbol duration in s (no CP)")
    tcp: float = Field(0.002, ge=0, description="Cyclic prefix duration in s")
    timing_mx_thresh: float = Field(
        0.30, ge=0, description="Normalised pilot correlation needed for valid timing"
    )
    nc: int = Field(17, gt=1, description="Number of data carriers")
    ns: int = Field(8, gt=1, description="Rows per frame, one pilot then ns-1 data")
    bps: int = Field(2, gt=0, description="Bits per symbol")
    txtbits: int = Field(4, ge=0, description="Auxiliary text bits per frame")
    ftwindowwidth: int = Field(11, gt=0, description="Timing search window width")
    foff_est_gain: float = Field(
        0.1, gt=0, le=1, description="Loop gain of the fine frequency estimator"
    )

    @model_validator(mode="after")
    def check_geometry(self) -> "ModemConfig":
        """Reject geometries the frame layout cannot represent."""
        if self.ncp >= self.m:
            raise ValueError(
                f"cyclic prefix ({self.ncp} samples) must be shorter than a symbol ({self.m})"
            )
        if self.nuwbits <= 0:
            raise ValueError(
                f"txtbits={self.txtbits} leaves no room for the unique word "
                f"in {(self.ns - 1) * self.bps} bits"
            )
        return self

    @property
    def rs(self) -> float:
        """Symbol rate in Hz (inverse of the symbol duration)."""
        return 1.0 / self.ts

    @property
    def m(self) -> int:
        """Samples per symbol, excluding the cyclic prefix."""
        return int(round(self.fs * self.ts))

    @property
    def ncp(self) -> int:
        """Samples in the cyclic prefix."""
        return int(round(self.tcp * self.fs))

    @property
    def bitsperframe(self) -> int:
        return (self.ns - 1) * self.nc * self.bps

    @property
    def rowsperframe(self) -> int:
        return self.bitsperframe // (self.nc * self.bps)

    @property
    def samplesperframe(self) -> int:
        return self.ns * (self.m + self.ncp)

    @property
    def max_samplesperframe(self) -> int:
        return self.samplesperframe + (self.m + self.ncp) // 4

    @property
    def nrxbuf(self) -> int:
        """Length of the demodulator receive buffer."""
        return 3 * self.samplesperframe + 3 * (self.m + self.ncp)

    @property
    def nuwbits(self) -> int:
        """Unique word bits, the first data row less the text bits."""
        return (self.ns - 1) * self.bps - self.txtbits


class TraceConfig(BaseModel):
    """Parameters of one trace run.

    The frame invariant ``nuwbits + txtbits + coded_bits_per_frame ==
    bitsperframe`` and the exact codeword symbol offset are checked here, so a
    bad combination fails before any buffer is allocated.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    modem: ModemConfig = Field(default_factory=ModemConfig)

    nframes: int = Field(10, gt=0, description="Number of frames to simulate")
    sample_clock_offset_ppm: float = Field(
        100.0, gt=-1e6, description="RX sample clock offset in ppm"
    )
    foff_hz: float = Field(0.5, description="Carrier frequency offset in Hz")
    channel_snr_db: Optional[float] = Field(
        None, description="SNR of added channel noise in dB, None for no noise"
    )
    noise_seed: Optional[int] = Field(None, description="Seed of the channel noise")

    coded_bits_per_frame: int = Field(224, gt=0, description="LDPC codeword bits")
    ldpc_enable: bool = Field(True, description="LDPC encode the payload")
    ldpc_max_iter: int = Field(100, gt=0, description="Decoder iteration cap")
    ldpc_seed: int = Field(112, description="Seed used to build the LDPC code")
    es_no: float = Field(10.0, gt=0, description="Linear Es/No assumed by the LLRs")
    payload_seed: int = Field(1, description="Seed of the test payload bits")

    rx_mode: RxMode = Field(
        RxMode.CHANNEL_FRONT_LOADED, description="Source of demod input"
    )
    rx_file: Optional[str] = Field(None, description="Raw int16 reference samples")
    rx_file_scale: float = Field(DEFAULT_RX_FILE_SCALE, gt=0)

    timing_en: bool = True
    foff_est_en: bool = True
    phase_est_en: bool = True
    verbose: bool = False
    initial_mean_amp: float = Field(1.0, gt=0)

    @model_validator(mode="after")
    def check_frame_layout(self) -> "TraceConfig":
        """Check the bit bookkeeping between modem frame and codeword."""
        from .frames import FrameLayout

        FrameLayout.from_config(self)

        if self.rx_mode == RxMode.REFERENCE_FILE and self.rx_file is None:
            raise ValueError("rx_mode 'reference_file' needs rx_file to be set")
        return self

    @property
    def data_bits_per_frame(self) -> int:
        """Payload bits per frame, the systematic half of the codeword."""
        return self.coded_bits_per_frame // 2

    @classmethod
    def from_yaml(cls, path: str) -> "TraceConfig":
        """Load a run configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            TraceConfig instance
        """
        import yaml

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def to_yaml(self, path: str):
        """Save the run configuration to a YAML file.

        Args:
            path: Path where YAML file will be saved
        """
        import yaml

        data = self.model_dump(mode="json")

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
