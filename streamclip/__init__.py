"""
streamclip - Clip extraction and acoustic analytics for segmented audio streams

Turns a time window on a live HLS feed into a reproducible artifact bundle.

Pipeline (fixed order):
    1. Fetch the feed's media playlist
    2. Select segments inside [start, end)
    3. Fingerprint the job (feed, window, formats)
    4. Assemble WAV / FLAC with ffmpeg
    5. Compute metrics (only when "psd" is requested)
    6. Persist artifacts + metadata sidecar to a date-partitioned tree

Invariants:
    - All instants are timezone-aware UTC
    - Fingerprint depends only on the job's defining fields
    - Same segments + same version = identical metrics
    - A metadata sidecar is written last and never rewritten
"""

__version__ = "1.0.0"
