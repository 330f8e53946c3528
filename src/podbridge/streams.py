"""Stream variant handling: picking one enclosure out of many upstream streams.

Upstream platforms expose a media item as a set of stream variants (different
containers, codecs, bitrates and transport protocols). Podcast clients need a
single progressively downloadable file with a plain MIME type, so this module
normalizes the variants reported by yt-dlp and selects the best one.
"""

import mimetypes
from typing import Any

from pydantic import BaseModel

from podbridge.errors import NoPlayableStream

# Transport protocols that can be downloaded as a single file
PROGRESSIVE_PROTOCOLS = frozenset({"http", "https"})

# MIME types podcast clients reliably play
SUPPORTED_MIME_TYPES = frozenset({"audio/mp4", "audio/x-m4a", "audio/mpeg", "audio/aac", "video/mp4"})

# Bitrate assumed when estimating the size of a stream (kbit/s)
DEFAULT_BITRATE_KBPS = 64

_CONTAINER_SUBTYPES = {
    "m4a": "mp4",
    "mp4": "mp4",
    "mp3": "mpeg",
    "aac": "aac",
    "webm": "webm",
    "ogg": "ogg",
    "opus": "ogg",
}

_EXTENSIONS = {
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/mpeg": "mp3",
    "audio/aac": "aac",
    "audio/ogg": "ogg",
    "audio/webm": "webm",
    "video/mp4": "mp4",
    "video/webm": "webm",
}


class StreamVariant(BaseModel):
    """One stream of a media item as reported upstream."""

    format_id: str
    url: str
    mime_type: str | None = None
    container: str | None = None
    audio_codec: str | None = None
    video_codec: str | None = None
    protocol: str | None = None
    bitrate: float | None = None
    filesize: int | None = None

    @property
    def has_audio(self) -> bool:
        # yt-dlp reports "none" for absent tracks and None for unknown ones
        return self.audio_codec != "none"

    @property
    def is_audio_only(self) -> bool:
        return self.video_codec == "none" and self.has_audio

    @property
    def is_progressive(self) -> bool:
        return (self.protocol or "").lower() in PROGRESSIVE_PROTOCOLS


def sanitize_mime_type(mime_type: str) -> str:
    """Strip parameters such as codecs from a MIME type.

    >>> sanitize_mime_type('audio/mp4; codecs="mp4a.40.2"')
    'audio/mp4'
    """
    return mime_type.split(";", 1)[0].strip().lower()


def _mime_type_for(fmt: dict[str, Any]) -> str | None:
    """Build a ``type/subtype; codecs=...`` string for a yt-dlp format."""
    container = (fmt.get("ext") or "").lower()
    subtype = _CONTAINER_SUBTYPES.get(container)
    if subtype is None:
        return None

    kind = "audio" if fmt.get("vcodec") == "none" else "video"
    # MP3 and AAC only exist as audio
    if subtype in ("mpeg", "aac"):
        kind = "audio"

    mime_type = f"{kind}/{subtype}"
    codecs = [c for c in (fmt.get("vcodec"), fmt.get("acodec")) if c and c != "none"]
    if codecs:
        mime_type += f'; codecs="{", ".join(codecs)}"'
    return mime_type


def variants_from_info(info: dict[str, Any]) -> list[StreamVariant]:
    """Extract stream variants from a yt-dlp info dict.

    Info dicts without a ``formats`` list describe a single stream at the
    top level.

    Args:
        info: Info dict as returned by ``YoutubeDL.extract_info``.

    Returns:
        Variants in the order yt-dlp reported them (worst to best).
    """
    formats = info.get("formats") or ([info] if info.get("url") else [])

    variants = []
    for index, fmt in enumerate(formats):
        url = fmt.get("url")
        if not url:
            continue
        filesize = fmt.get("filesize") or fmt.get("filesize_approx")
        variants.append(
            StreamVariant(
                format_id=str(fmt.get("format_id") or index),
                url=url,
                mime_type=fmt.get("mime_type") or _mime_type_for(fmt),
                container=fmt.get("ext"),
                audio_codec=fmt.get("acodec"),
                video_codec=fmt.get("vcodec"),
                protocol=fmt.get("protocol"),
                bitrate=fmt.get("abr") or fmt.get("tbr"),
                filesize=int(filesize) if filesize else None,
            )
        )
    return variants


def select_best_stream(variants: list[StreamVariant]) -> StreamVariant:
    """Select the single best enclosure stream.

    Only progressive, audio-carrying variants with a supported MIME type
    qualify. Among those, audio-only streams win over muxed video, then the
    highest bitrate, then the variant reported last (yt-dlp orders formats
    from worst to best).

    Raises:
        NoPlayableStream: If no variant qualifies.
    """
    candidates = [
        (index, variant)
        for index, variant in enumerate(variants)
        if variant.is_progressive
        and variant.has_audio
        and variant.mime_type
        and sanitize_mime_type(variant.mime_type) in SUPPORTED_MIME_TYPES
    ]
    if not candidates:
        raise NoPlayableStream(f"No playable stream among {len(variants)} variants")

    _, best = max(
        candidates,
        key=lambda pair: (pair[1].is_audio_only, pair[1].bitrate or 0.0, pair[0]),
    )
    return best


def extension_for(mime_type: str) -> str:
    """Return the file extension for a (sanitized) MIME type."""
    mime_type = sanitize_mime_type(mime_type)
    if mime_type in _EXTENSIONS:
        return _EXTENSIONS[mime_type]

    guessed = mimetypes.guess_extension(mime_type)
    return guessed.lstrip(".") if guessed else "bin"


def estimated_length(duration: float | None, bitrate_kbps: float | None = None) -> int | None:
    """Estimate a stream's size in bytes from its duration and bitrate."""
    if not duration:
        return None
    bitrate = bitrate_kbps or DEFAULT_BITRATE_KBPS
    return int(bitrate * 1024 * duration / 8)
