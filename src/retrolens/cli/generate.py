"""CLI command for generating every era portrait from one photo.

Usage:
    python -m retrolens.cli PHOTO [OPTIONS]

Examples:
    # Generate all six eras in the default (strict) style
    python -m retrolens.cli portrait.jpg

    # Creative style, images written to ./out
    python -m retrolens.cli portrait.jpg --style creative --output-dir out

    # Verbose logging
    python -m retrolens.cli portrait.jpg -v
"""

import asyncio
import base64
import binascii
import mimetypes
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Optional, Sequence

import structlog

from retrolens.core.config import Settings, configure_logging
from retrolens.core.dependencies import build_generation_session
from retrolens.models.job import GenerationStyle, JobStatus, SourceImage
from retrolens.services.image_generation.gemini_client import ImageBackend
from retrolens.workers.batch_scheduler import GenerationSession

logger = structlog.get_logger()

EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


def parse_args(argv: Optional[Sequence[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Generate era-styled portraits from a single photo",
        epilog="Requires GEMINI_API_KEY in the environment or .env file",
    )

    parser.add_argument("photo", type=Path, help="Source photo (PNG, JPEG or WebP)")

    parser.add_argument(
        "--style",
        choices=[style.value for style in GenerationStyle],
        help="Prompt style (default: DEFAULT_GENERATION_STYLE setting)",
    )

    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for generated images (default: current directory)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


def load_source_image(path: Path) -> SourceImage:
    """Read a photo from disk.

    Raises:
        ValueError: If the file type is not a supported image type
    """
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type not in EXTENSIONS:
        raise ValueError(f"Unsupported image type for {path.name}: {mime_type or 'unknown'}")
    return SourceImage(mime_type=mime_type, data=path.read_bytes())


def write_images(session: GenerationSession, output_dir: Path) -> list[Path]:
    """Write every finished image as ``retrolens-<label>.<ext>``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for label, image_url in session.completed_images().items():
        header, _, payload = image_url.partition(",")
        mime_type = header.removeprefix("data:").split(";")[0]
        extension = EXTENSIONS.get(mime_type, "png")
        path = output_dir / f"retrolens-{label.replace(' ', '-')}.{extension}"
        try:
            path.write_bytes(base64.b64decode(payload))
        except binascii.Error as e:
            logger.error("cli.image_decode_failed", label=label, error_message=str(e))
            continue
        written.append(path)
    return written


async def run(
    args: Namespace, settings: Settings, backend: Optional[ImageBackend] = None
) -> int:
    """Run one batch and report results.

    Returns:
        Exit code: 0 (all eras done), 1 (nothing produced or session halted),
        2 (partial success)
    """
    try:
        image = load_source_image(args.photo)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    session = build_generation_session(settings, backend=backend)
    if args.style:
        session.set_style(args.style)
    session.set_source_image(image)

    logger.info("cli.started", photo=str(args.photo), style=session.style.value)
    await session.run_batch()

    written = {path.name for path in write_images(session, args.output_dir)}
    for view in session.views():
        if view.status == JobStatus.DONE:
            print(f"{view.label}: done")
        else:
            print(f"{view.label}: error - {view.error}")

    if session.halted:
        print(f"Generation halted: {session.fatal_error}", file=sys.stderr)
        return 1

    done = len(session.completed_images())
    logger.info("cli.completed", done=done, total=len(session.labels), files=sorted(written))
    if session.is_complete:
        return 0
    return 2 if done else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    return asyncio.run(run(args, settings))
