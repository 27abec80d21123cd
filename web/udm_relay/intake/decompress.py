"""
Compressed capture opener.

`open_capture(path)` yields a binary file-like object for a pcap/pcapng file
that may be stored plain, gzip-compressed or zstd-compressed. Compression is
inferred from the filename suffix.

This module does not parse packets; it only handles decompression.
"""

from __future__ import annotations

import gzip
import os
from contextlib import contextmanager
from typing import Generator, IO, Literal, Tuple, Union

import zstandard  # type: ignore

Compressor = Literal["none", "gzip", "zstd"]

COMP_SUFFIXES: Tuple[Tuple[str, Compressor], ...] = (
    (".zst", "zstd"),
    (".zstd", "zstd"),
    (".gz", "gzip"),
)


def infer_compressor(name: str) -> Compressor:
    lower = name.lower()
    for suffix, comp in COMP_SUFFIXES:
        if lower.endswith(suffix):
            return comp
    return "none"


@contextmanager
def open_capture(path: Union[str, os.PathLike]) -> Generator[IO[bytes], None, None]:
    """
    Context manager yielding a readable binary stream for the capture file.

    - no suffix : open() in 'rb'
    - .gz       : gzip.open(..., 'rb')
    - .zst      : zstd stream reader over the file
    """
    comp = infer_compressor(os.fspath(path))

    if comp == "gzip":
        f = gzip.open(path, "rb")
        try:
            yield f
        finally:
            f.close()
        return

    if comp == "zstd":
        raw = open(path, "rb")
        dctx = zstandard.ZstdDecompressor()
        stream = dctx.stream_reader(raw)
        try:
            yield stream
        finally:
            try:
                stream.close()
            finally:
                raw.close()
        return

    f = open(path, "rb")
    try:
        yield f
    finally:
        f.close()
