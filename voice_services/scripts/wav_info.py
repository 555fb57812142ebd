"""Print WAV metadata and the silence verdict for a file on disk."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from voice_services.audio.silence import DEFAULT_SILENCE_THRESHOLD, DEFAULT_SILENT_RATIO, SilenceDetector
from voice_services.audio.wav_codec import decode_wav, find_chunks
from voice_services.errors import AudioFileError
from voice_services.ingest import read_wav_file


def describe_wav(
    path: Path,
    silence_threshold: float = DEFAULT_SILENCE_THRESHOLD,
    silent_ratio: float = DEFAULT_SILENT_RATIO,
) -> dict:
    """Decode ``path`` and return its format, chunk layout and silence analysis."""

    data = read_wav_file(path)
    pcm = decode_wav(data)
    analysis = SilenceDetector(silence_threshold, silent_ratio).analyze(pcm)
    return {
        "path": str(path),
        "sample_rate": pcm.sample_rate,
        "bits_per_sample": pcm.bits_per_sample,
        "channels": pcm.channels,
        "data_size": len(pcm.data),
        "duration_seconds": round(pcm.duration_seconds, 3),
        "chunks": [
            {"id": chunk_id.decode("latin-1"), "offset": chunk.offset, "size": chunk.size}
            for chunk_id, chunk in find_chunks(data).items()
        ],
        "silence": analysis.asdict(),
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect a PCM WAV file")
    parser.add_argument("path", type=Path, help="WAV file to inspect")
    parser.add_argument(
        "--silence-threshold",
        type=float,
        default=DEFAULT_SILENCE_THRESHOLD,
        help="Per-frame amplitude below which a frame counts as silent (default: %(default)s)",
    )
    parser.add_argument(
        "--silent-ratio",
        type=float,
        default=DEFAULT_SILENT_RATIO,
        help="Fraction of silent frames needed to call the file silent (default: %(default)s)",
    )
    args = parser.parse_args(argv)

    try:
        report = describe_wav(args.path, args.silence_threshold, args.silent_ratio)
    except (AudioFileError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(report, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
