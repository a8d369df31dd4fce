"""
IMA ADPCM (Microsoft/IMA 4-bit, WAVE format 0x11) to 16-bit PCM decoder.

Stream layout (per block of `frame_size` bytes):

  Preamble, 4 bytes per channel:
    +0  INT16 LE  initial predictor
    +2  INT8      initial step index (clamped to 0..88)
    +3  UINT8     reserved, always 0 in valid blocks

  Sample data:
    Mono   - one byte holds two samples, low nibble first.
    Stereo - 8-byte groups: 4 bytes (8 nibbles) of left channel followed by
             4 bytes of right channel, low nibble first within each byte.
             Output is re-interleaved as L R L R ...

A non-zero reserved byte is treated as the end of usable data: decoding stops
and everything produced before that block is returned. Some mobile assets pad
their data chunk with garbage that trips this.

Reference: https://wiki.multimedia.cx/index.php/Microsoft_IMA_ADPCM
"""

import struct
from array import array

import numpy as np

INDEX_TABLE = (
    -1, -1, -1, -1, 2, 4, 6, 8,
    -1, -1, -1, -1, 2, 4, 6, 8
)

STEP_TABLE = (
    7, 8, 9, 10, 11, 12, 13, 14, 16, 17,
    19, 21, 23, 25, 28, 31, 34, 37, 41, 45,
    50, 55, 60, 66, 73, 80, 88, 97, 107, 118,
    130, 143, 157, 173, 190, 209, 230, 253, 279, 307,
    337, 371, 408, 449, 494, 544, 598, 658, 724, 796,
    876, 963, 1060, 1166, 1282, 1411, 1552, 1707, 1878, 2066,
    2272, 2499, 2749, 3024, 3327, 3660, 4026, 4428, 4871, 5358,
    5894, 6484, 7132, 7845, 8630, 9493, 10442, 11487, 12635, 13899,
    15289, 16818, 18500, 20350, 22385, 24623, 27086, 29794, 32767
)

MAX_STEP_INDEX = len(STEP_TABLE) - 1

PREAMBLE_SIZE = 4           # per channel
STEREO_GROUP_SIZE = 8       # 4 bytes left + 4 bytes right

_PREAMBLE_STRUCT = struct.Struct('<hbB')


class InvalidInput(ValueError):
    """Framing parameters or data length inconsistent with the stream."""


def clamp(value, lower, upper):
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value


def decode_sample(nibble, predictor, step_index):
    """
    Decode one 4-bit code against a channel's running state.

    Returns (sample, step_index). The sample is also the channel's next
    predictor.
    """
    nibble &= 0x0F
    step = STEP_TABLE[step_index] & 0xFFFF

    diff = (step >> 3) & 0x1FFF
    if nibble & 4: diff += step
    if nibble & 2: diff += (step >> 1) & 0x7FFF
    if nibble & 1: diff += (step >> 2) & 0x3FFF
    if nibble & 8: diff = -diff

    sample = clamp(predictor + diff, -32768, 32767)
    step_index = clamp(step_index + INDEX_TABLE[nibble], 0, MAX_STEP_INDEX)

    return sample, step_index


class ChannelState:
    """Predictor and step index for one channel within one block."""

    __slots__ = ('predictor', 'step_index')

    def __init__(self, predictor=0, step_index=0):
        self.predictor = predictor
        self.step_index = clamp(step_index, 0, MAX_STEP_INDEX)

    def decode(self, nibble):
        self.predictor, self.step_index = decode_sample(nibble, self.predictor, self.step_index)
        return self.predictor

    def __repr__(self):
        return f"ChannelState(predictor={self.predictor}, step_index={self.step_index})"


def read_preamble(data, offset):
    """
    Read one channel's 4-byte block preamble at `offset`.
    Returns (ChannelState, reserved_byte).
    """
    predictor, step_index, reserved = _PREAMBLE_STRUCT.unpack_from(data, offset)
    return ChannelState(predictor, step_index), reserved


def check_framing(num_channels, frame_size):
    if num_channels not in (1, 2):
        raise InvalidInput(f"Unsupported channel count {num_channels} (expected 1 or 2)")

    preamble_total = PREAMBLE_SIZE * num_channels
    if frame_size <= preamble_total:
        raise InvalidInput(f"Block size {frame_size} leaves no room for samples after "
                           f"{preamble_total} preamble bytes")

    if num_channels == 2 and (frame_size - preamble_total) % STEREO_GROUP_SIZE:
        raise InvalidInput(f"Stereo block size {frame_size} does not hold whole "
                           f"{STEREO_GROUP_SIZE}-byte sample groups")


def _decode_mono(data, start, end, state, out, out_pos):
    for pos in range(start, end):
        byte = data[pos]
        out[out_pos] = state.decode(byte & 0x0F)
        out[out_pos + 1] = state.decode(byte >> 4)
        out_pos += 2
    return out_pos


def _decode_stereo(data, start, end, states, out, out_pos):
    # Each group of 8 input bytes carries 8 samples per channel. Sample k of
    # channel ch lands at out[out_pos + 2 * k + ch].
    for group in range(start, end - STEREO_GROUP_SIZE + 1, STEREO_GROUP_SIZE):
        for ch in (0, 1):
            state = states[ch]
            src = group + ch * 4
            for k in range(4):
                byte = data[src + k]
                dst = out_pos + 4 * k + ch
                out[dst] = state.decode(byte & 0x0F)
                out[dst + 2] = state.decode(byte >> 4)
        out_pos += 16
    return out_pos


def decode_adpcm_blocks(data, num_channels, frame_size, strict=True):
    """
    Decode a whole IMA ADPCM data chunk into interleaved 16-bit samples.

    data:         bytes-like, the contents of the WAV 'data' chunk
    num_channels: 1 or 2
    frame_size:   bytes per block (WAV block align), preambles included
    strict:       raise InvalidInput on a short final block instead of
                  decoding what it holds

    Returns (samples, terminated): a numpy int16 array, and True when
    decoding stopped at a preamble with a non-zero reserved byte.
    """
    check_framing(num_channels, frame_size)

    data = memoryview(data).cast('B')
    size = len(data)
    preamble_total = PREAMBLE_SIZE * num_channels

    # Worst case: every input byte yields two samples.
    out = array('h', bytes(size * 4))
    out_pos = 0
    terminated = False

    for block_start in range(0, size, frame_size):
        block_end = min(block_start + frame_size, size)

        states = []
        for ch in range(num_channels):
            offset = block_start + ch * PREAMBLE_SIZE
            if offset + PREAMBLE_SIZE > block_end:
                break
            state, reserved = read_preamble(data, offset)
            if reserved != 0:
                terminated = True
                break
            states.append(state)

        if terminated:
            break

        if len(states) < num_channels:
            if strict:
                raise InvalidInput(f"Block at offset {block_start} truncated inside its preamble "
                                   f"({block_end - block_start} of {preamble_total} bytes)")
            break

        if block_end - block_start < frame_size and strict:
            raise InvalidInput(f"Block at offset {block_start} truncated: "
                               f"{block_end - block_start} of {frame_size} bytes")

        sample_start = block_start + preamble_total
        if num_channels == 1:
            out_pos = _decode_mono(data, sample_start, block_end, states[0], out, out_pos)
        else:
            out_pos = _decode_stereo(data, sample_start, block_end, states, out, out_pos)

    samples = np.array(out[:out_pos], dtype=np.int16)
    return samples, terminated


def decode_adpcm_samples(data, num_channels, frame_size, strict=True):
    """Decode an IMA ADPCM data chunk into a numpy int16 array of interleaved samples."""
    return decode_adpcm_blocks(data, num_channels, frame_size, strict=strict)[0]


def decode_adpcm(data, num_channels, frame_size, strict=True):
    """Decode an IMA ADPCM data chunk to signed 16-bit little-endian PCM bytes."""
    samples = decode_adpcm_samples(data, num_channels, frame_size, strict=strict)
    return samples.astype('<i2').tobytes()
