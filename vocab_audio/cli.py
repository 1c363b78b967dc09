"""
Command line interface for the vocabulary audio pipeline.

Usage:
    python -m vocab_audio.cli play "สวัสดี" --language th-TH
    python -m vocab_audio.cli play "สวัสดี" --content-id 42 --catalog cards.json
    python -m vocab_audio.cli export 1 2 3 --catalog cards.json --out ./exports
    python -m vocab_audio.cli serve --port 8010
"""

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from typing import List, Optional

from .batch_export import write_archive
from .config import AudioConfig
from .errors import NoPlaybackCapability
from .models import AssetKind, AudioRequest, ExportProgress
from .playback import OutcomeStatus, PlaybackController
from .services import build_services
from .speech import EspeakSpeechEngine, SubprocessAudioBackend


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Pronunciation audio tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m vocab_audio.cli play "สวัสดี"
  python -m vocab_audio.cli export 1 2 3 --catalog cards.json --out ./exports
  python -m vocab_audio.cli serve
        """
    )
    parser.add_argument(
        "--catalog",
        help="JSON catalog file (default: VOCAB_AUDIO_CATALOG)"
    )
    subparsers = parser.add_subparsers(dest="command")

    play = subparsers.add_parser("play", help="Resolve and play pronunciation audio")
    play.add_argument("text", help="Text to pronounce")
    play.add_argument("--language", help="Language tag (default: VOCAB_AUDIO_LANGUAGE)")
    play.add_argument("--content-id", type=int, help="Catalog item the text belongs to")
    play.add_argument(
        "--kind",
        choices=[AssetKind.WORD.value, AssetKind.EXAMPLE.value],
        default=AssetKind.WORD.value,
        help="Which audio of the item (default: word)"
    )
    play.add_argument(
        "--server",
        default="",
        help="Base URL of a running service for proxied streams (default: localhost)"
    )

    export = subparsers.add_parser("export", help="Export card images and example audio as zip")
    export.add_argument("content_ids", nargs="+", type=int, help="Catalog item ids")
    export.add_argument("--out", default=".", help="Output directory (default: .)")

    serve = subparsers.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--port", type=int, help="Port (default: VOCAB_AUDIO_SERVICE_PORT)")

    return parser


async def _play(config: AudioConfig, args) -> int:
    speech = EspeakSpeechEngine(rate=config.speech_rate)
    services = build_services(config, speech_available=speech.is_available)
    backend = SubprocessAudioBackend(config, services.store, speech=speech, base_url=args.server)
    controller = PlaybackController(services.resolver, backend)
    request = AudioRequest(
        text=args.text,
        language=args.language or config.default_language,
        content_id=args.content_id,
        kind=AssetKind(args.kind),
    )
    try:
        outcome = await controller.play(request)
        if outcome.status != OutcomeStatus.PLAYING:
            print(f" Playback {outcome.status.value}")
            return 1
        print(f" Playing {type(outcome.source).__name__}")
        ended = await controller.wait_until_idle()
        status = ended.status if ended else OutcomeStatus.FINISHED
        print(f" Playback {status.value}")
        return 0 if status == OutcomeStatus.FINISHED else 1
    except NoPlaybackCapability as e:
        print(f" Error: {e}")
        return 2
    finally:
        await services.close()


async def _export(config: AudioConfig, args) -> int:
    services = build_services(config)
    try:
        items = []
        for content_id in args.content_ids:
            item = await services.catalog.get_item(content_id)
            if item is None:
                print(f" Error: card {content_id} not found")
                return 1
            items.append(item)

        def show_progress(progress: ExportProgress):
            print(f"   [{progress.current}/{progress.total}] {progress.status_message}")

        result = await services.exporter.export_batch(items, on_progress=show_progress)
        target = write_archive(result, args.out)
        summary = result.summary()
        print(f"\n Summary: {summary['images']} images, {summary['audio']} audio files -> {target}")
        for content_id, reason in result.failures.items():
            print(f"   Card {content_id}: {reason}")
        return 0 if not result.failures else 1
    finally:
        await services.close()


async def _cli_main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = AudioConfig.from_env()
    if args.catalog:
        config = replace(config, catalog_path=args.catalog)

    if args.command == "play":
        return await _play(config, args)
    return await _export(config, args)


def main(argv: Optional[List[str]] = None):
    # Configure logging for CLI
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s: %(message)s"
    )

    args = build_parser().parse_args(argv)
    if args.command == "serve":
        if args.catalog:
            os.environ["VOCAB_AUDIO_CATALOG"] = args.catalog
        from .app import run
        run(port=args.port)
        return

    sys.exit(asyncio.run(_cli_main(argv)))


if __name__ == "__main__":
    main()
