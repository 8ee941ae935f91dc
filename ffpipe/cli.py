from __future__ import annotations

import argparse
import sys

from tqdm import tqdm

from .config import DRAIN_MODES
from .demo import gif_command, numbered_frames
from .encode import encode_frames
from .errors import EncoderError
from .logger import get_logger
from .options import config_from_options, load_options, save_options


def parse_args(argv: list[str] | None = None, defaults: dict | None = None) -> argparse.Namespace:
    """Return parsed command-line arguments."""
    d = defaults if defaults is not None else load_options()
    p = argparse.ArgumentParser(description="Write a numbered test video through FFmpeg")
    p.add_argument("output", nargs="?", default=d["output"], help="output video file")
    p.add_argument("--width", type=int, default=512, help="frame width")
    p.add_argument("--height", type=int, default=384, help="frame height")
    p.add_argument("--frames", type=int, default=50, help="number of frames")
    p.add_argument("--fps", type=float, default=d["framerate"], help="frame rate")
    p.add_argument("--codec", default=d["vcodec"], help="FFmpeg video codec")
    p.add_argument("--pix-fmt", default=d["pix_fmt"], help="encoded pixel format")
    p.add_argument("--crf", type=int, default=d["crf"], help="constant rate factor (negative = codec default)")
    p.add_argument("--ffmpeg", default=d["ffmpeg_cmd"], help="FFmpeg executable")
    sink = p.add_mutually_exclusive_group()
    sink.add_argument("--log-file", default=d["log_file"] or None, help="write FFmpeg output to this file")
    sink.add_argument("--console-log", action="store_true", default=d["log_to_console"], help="print FFmpeg output")
    p.add_argument("--cmd", default=None, help="complete FFmpeg command line (other encoding flags are ignored)")
    p.add_argument("--gif", action="store_true", help="encode an animated GIF instead")
    p.add_argument("--drain", choices=DRAIN_MODES, default=d["drain_mode"], help="how FFmpeg output is collected")
    p.add_argument("--save-defaults", action="store_true", help="remember the encoding flags for next time")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    logger = get_logger()
    opts = load_options()
    args = parse_args(argv, opts)
    if args.width <= 0 or args.height <= 0 or args.frames <= 0:
        logger.error("width, height and frames must be positive")
        sys.exit(2)

    if args.save_defaults:
        opts.update(
            {
                "output": args.output,
                "ffmpeg_cmd": args.ffmpeg,
                "framerate": args.fps,
                "pix_fmt": args.pix_fmt,
                "vcodec": args.codec,
                "crf": args.crf,
                "log_file": args.log_file or "",
                "log_to_console": args.console_log and not args.log_file,
                "drain_mode": args.drain,
            }
        )
        save_options(opts)

    cmd = args.cmd
    if cmd is None and args.gif:
        cmd = gif_command(args.ffmpeg, args.width, args.height, args.fps, args.output)

    try:
        config = config_from_options(
            opts,
            output_filename=args.output,
            ffmpeg_cmd=args.ffmpeg,
            framerate=args.fps,
            pix_fmt=args.pix_fmt,
            vcodec=args.codec,
            crf=args.crf,
            cmd=cmd,
            log_file=args.log_file,
            log_to_console=args.console_log and not args.log_file,
            drain_mode=args.drain,
        )
        frames = tqdm(
            numbered_frames(args.width, args.height, args.frames),
            total=args.frames,
            unit="frame",
        )
        encode_frames(frames, config, log_cb=logger.info)
    except EncoderError as exc:
        logger.error("Error: %s", exc)
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
