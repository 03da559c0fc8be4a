"""Helpers shared by staging clients: batch file naming and payload compression."""

import uuid
from datetime import datetime, timezone

import pyarrow as pa

EXTENSIONS = {
    "none": "",
    "gzip": ".gz",
    "bz2": ".bz2",
    "zstd": ".zst",
}


def build_file_name(counter: int, compression: str = "none") -> str:
    """
    Build a unique batch file name.

    Format: data_YYYYMMDD_HHMMSS_<counter:06d>_<8 hex chars>.csv[.gz|.bz2|.zst]
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"data_{timestamp}_{counter:06d}_{uuid.uuid4().hex[:8]}.csv{EXTENSIONS[compression]}"


def join_path(*parts: str) -> str:
    """Join path segments with '/', dropping empty segments and stray slashes."""
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def compress_payload(data: bytes, compression: str = "none") -> bytes:
    """
    Compress a batch payload with an Arrow codec.

    Args:
        data: Raw CSV bytes
        compression: 'none', 'gzip', 'bz2' or 'zstd'

    Returns:
        Compressed bytes (the input itself for 'none')
    """
    if compression not in EXTENSIONS:
        raise ValueError(f"Unsupported compression: {compression}")
    if compression == "none":
        return data

    sink = pa.BufferOutputStream()
    with pa.CompressedOutputStream(sink, compression) as out:
        out.write(data)
    return sink.getvalue().to_pybytes()
