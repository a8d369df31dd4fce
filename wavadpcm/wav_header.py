"""
Minimal RIFF/WAVE header reader and writer.

Both sides use the canonical 44-byte layout (little-endian):

  +0x00  CHAR[4] "RIFF"
  +0x04  UINT32  file size - 8
  +0x08  CHAR[4] "WAVE"
  +0x0C  CHAR[4] "fmt "
  +0x10  UINT32  fmt chunk size
  +0x14  UINT16  audio format (1 = linear PCM, 0x11 = IMA ADPCM)
  +0x16  UINT16  channels
  +0x18  UINT32  sample rate
  +0x1C  UINT32  bytes per second
  +0x20  UINT16  block align (ADPCM: bytes per block, preambles included)
  +0x22  UINT16  bits per sample (IMA ADPCM assets use 4)
  +0x24  CHAR[4] "data"
  +0x28  UINT32  data size

No magic-string validation is done on read. Callers are expected to route
only IMA ADPCM tagged streams to the decoder; anything else parses into
meaningless framing parameters rather than an error.
"""

import struct
from collections import namedtuple

from wavadpcm.common.riff import RIFF_TAG, WAVE_TAG, FMT_TAG, DATA_TAG, read_exact

HEADER_SIZE = 44
FMT_CHUNK_SIZE = 16

WAVE_FORMAT_PCM = 0x0001
WAVE_FORMAT_IMA_ADPCM = 0x0011

PCM_BITS_PER_SAMPLE = 16

_HEADER_STRUCT = struct.Struct('<4sI4s4sIHHIIHH4sI')

WavFormatInfo = namedtuple('WavFormatInfo', ['audio_format', 'sample_rate', 'num_channels', 'frame_size'])


def parse_header(data):
    """Parse the first 44 bytes of `data` into a WavFormatInfo."""
    if len(data) < HEADER_SIZE:
        raise EOFError(f"WAV header needs {HEADER_SIZE} bytes, got {len(data)}")

    (_riff, _file_size, _wave, _fmt, _fmt_size,
     audio_format, num_channels, sample_rate, _byte_rate,
     frame_size, _bits_per_sample, _data, _data_size) = _HEADER_STRUCT.unpack_from(data, 0)

    return WavFormatInfo(audio_format, sample_rate, num_channels, frame_size)


def read_header(stream):
    """
    Read the 44-byte header from a stream positioned at the start of the file.
    Leaves the stream positioned at the first byte of sample data.
    """
    return parse_header(read_exact(stream, HEADER_SIZE))


def build_header(num_channels, sample_rate, data_size):
    """
    Build a header describing `data_size` bytes of 16-bit signed little-endian
    PCM with the given channel count and sample rate.
    """
    block_align = num_channels * PCM_BITS_PER_SAMPLE // 8
    byte_rate = sample_rate * block_align

    return _HEADER_STRUCT.pack(
        RIFF_TAG,
        (36 + data_size) & 0xFFFFFFFF,
        WAVE_TAG,
        FMT_TAG,
        FMT_CHUNK_SIZE,
        WAVE_FORMAT_PCM,
        num_channels,
        sample_rate,
        byte_rate & 0xFFFFFFFF,
        block_align,
        PCM_BITS_PER_SAMPLE,
        DATA_TAG,
        data_size & 0xFFFFFFFF,
    )
