import struct

# RIFF/WAVE chunk tags
RIFF_TAG = b'RIFF'
WAVE_TAG = b'WAVE'
FMT_TAG = b'fmt '
DATA_TAG = b'data'

def read_u16_le(data, offset=0):
    return struct.unpack_from('<H', data, offset)[0]

def read_u32_le(data, offset=0):
    return struct.unpack_from('<I', data, offset)[0]

def read_exact(stream, size):
    """
    Read exactly `size` bytes from a file-like object.
    Raises EOFError if the stream runs out first.
    """
    buf = bytearray()
    while len(buf) < size:
        chunk = stream.read(size - len(buf))
        if not chunk:
            raise EOFError(f"Expected {size} bytes, stream ended after {len(buf)}")
        buf.extend(chunk)
    return bytes(buf)
