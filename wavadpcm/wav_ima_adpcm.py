#!/usr/bin/env python3
"""
IMA ADPCM WAV -> PCM16 WAV converter

Players that only understand linear PCM get a plain 16-bit WAV back; anything
that is not tagged as IMA ADPCM (format 0x11) is passed through untouched.

Usage:
    python -m wavadpcm.wav_ima_adpcm sound.wav
    python -m wavadpcm.wav_ima_adpcm assets/ --output pcm_output
    python -m wavadpcm.wav_ima_adpcm sound.wav --info
    python -m wavadpcm.wav_ima_adpcm sound.wav --lenient
"""

import os
import sys
import glob
import argparse
import traceback

from wavadpcm.common.riff import read_exact, read_u16_le, read_u32_le
from wavadpcm.ima_adpcm import decode_adpcm_blocks
from wavadpcm.wav_header import (
    HEADER_SIZE, WAVE_FORMAT_IMA_ADPCM, build_header, parse_header,
)

# ---------------------------------------------------------------------------
# Configuration (overridden by CLI args)
# ---------------------------------------------------------------------------
DEFAULT_OUTPUT_DIR = 'pcm_output'


def decode_wav_image(stream, fmt, strict=True):
    """
    Like decode_ima_adpcm, but returns (wav_bytes, terminated) where
    `terminated` is True if a non-zero reserved preamble byte ended the
    stream before the data ran out.
    """
    data = stream.read()
    samples, terminated = decode_adpcm_blocks(data, fmt.num_channels, fmt.frame_size, strict=strict)
    pcm = samples.astype('<i2').tobytes()
    return build_header(fmt.num_channels, fmt.sample_rate, len(pcm)) + pcm, terminated


def decode_ima_adpcm(stream, fmt, strict=True):
    """
    Decode the rest of `stream` (positioned just past the 44-byte header)
    using the framing in `fmt`, a WavFormatInfo.

    Returns a complete PCM16 WAV image: new header followed by sample data.
    """
    return decode_wav_image(stream, fmt, strict=strict)[0]


def convert_wav(stream, strict=True):
    """
    Return a WAV image a PCM-only player can consume. IMA ADPCM input is
    decoded, any other format comes back byte-for-byte.
    """
    header = read_exact(stream, HEADER_SIZE)
    fmt = parse_header(header)

    if fmt.audio_format != WAVE_FORMAT_IMA_ADPCM:
        return header + stream.read()

    return decode_ima_adpcm(stream, fmt, strict=strict)


def collect_inputs(paths):
    files = []
    for path in paths:
        if os.path.isdir(path):
            found = sorted(glob.glob(os.path.join(path, '*.wav')) + glob.glob(os.path.join(path, '*.WAV')))
            files.extend(found)
        else:
            files.append(path)
    return files


def print_info(path):
    with open(path, 'rb') as f:
        header = read_exact(f, HEADER_SIZE)
    fmt = parse_header(header)

    print(f"{path}:")
    print(f"  AudioFormat:   0x{fmt.audio_format:04X}"
          f"{' (IMA ADPCM)' if fmt.audio_format == WAVE_FORMAT_IMA_ADPCM else ''}")
    print(f"  Channels:      {fmt.num_channels}")
    print(f"  SampleRate:    {fmt.sample_rate}")
    print(f"  FrameSize:     {fmt.frame_size}")
    print(f"  BitsPerSample: {read_u16_le(header, 34)}")
    print(f"  DataSize:      {read_u32_le(header, 40)}")


def convert_file(path, output_dir, strict=True):
    with open(path, 'rb') as f:
        header = read_exact(f, HEADER_SIZE)
        fmt = parse_header(header)

        if fmt.audio_format != WAVE_FORMAT_IMA_ADPCM:
            print(f"WARNING: {path} is format 0x{fmt.audio_format:04X}, not IMA ADPCM. Copied unchanged.")
            result = header + f.read()
        else:
            result, terminated = decode_wav_image(f, fmt, strict=strict)
            if terminated:
                print(f"WARNING: {path}: stream ended early at a non-zero reserved preamble byte.")

    out_path = os.path.join(output_dir, os.path.basename(path))
    with open(out_path, 'wb') as f:
        f.write(result)

    print(f"Converted {path} -> {out_path} ({len(result) - HEADER_SIZE} bytes of PCM)")
    return out_path


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Convert IMA ADPCM WAV files to 16-bit PCM WAV.")
    parser.add_argument("inputs", nargs='+', help="WAV files or directories containing WAV files")
    parser.add_argument("--output", default=DEFAULT_OUTPUT_DIR, help=f"Output directory (default: {DEFAULT_OUTPUT_DIR})")
    parser.add_argument("--info", action="store_true", help="Print the parsed header and exit")
    parser.add_argument("--lenient", action="store_true",
                        help="Decode a truncated final block instead of failing")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    files = collect_inputs(args.inputs)

    if not files:
        print("No WAV files found.")
        return 1

    if args.info:
        for path in files:
            try:
                print_info(path)
            except Exception as e:
                print(f"Failed to read header of {path}: {e}")
        return 0

    os.makedirs(args.output, exist_ok=True)

    failed = 0
    for path in files:
        try:
            convert_file(path, args.output, strict=not args.lenient)
        except Exception as e:
            print(f"Failed to convert {path}: {e}")
            traceback.print_exc()
            failed += 1

    print(f"Done. {len(files) - failed}/{len(files)} converted.")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
