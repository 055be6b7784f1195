import lzma

import snappy

from .errors import UnsupportedAlgorithm

PASSTHROUGH = "passthrough"
SNAPPY = "snappy"
LZMA = "lzma"

ALGORITHMS = (PASSTHROUGH, SNAPPY, LZMA)


def _check(algorithm: str) -> None:
    if algorithm not in ALGORITHMS:
        raise UnsupportedAlgorithm(algorithm)


def compress(data: bytes, algorithm: str) -> bytes:
    _check(algorithm)
    if algorithm == SNAPPY:
        return snappy.compress(data)
    if algorithm == LZMA:
        return lzma.compress(data, format=lzma.FORMAT_XZ)
    return bytes(data)


def decompress(data: bytes, algorithm: str) -> bytes:
    _check(algorithm)
    if algorithm == SNAPPY:
        return snappy.decompress(data)
    if algorithm == LZMA:
        return lzma.decompress(data, format=lzma.FORMAT_XZ)
    return bytes(data)
