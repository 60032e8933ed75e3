import argparse
import logging
import sys

import numpy as np
from PIL import Image

from fractals.base import RenderSettings, SamplerConfig
from kernel_sources.escape_time import MAX_ITERATIONS
from rendering.post_process import PingPongSurfaces, PostProcessManager
from utils.enums import AddressMode, BackendType, FilterMode, WriteMode

logger = logging.getLogger("escape_overlay")

PRECISIONS = {"f32": np.float32, "f64": np.float64}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run one escape-time post-process pass and save it as PNG.")
    parser.add_argument("--width", type=int, default=800)
    parser.add_argument("--height", type=int, default=600)
    parser.add_argument("--max-iterations", dest="max_iter", type=int, default=MAX_ITERATIONS,
                        help="iteration budget; also the 'did not escape' value")
    parser.add_argument("--mode", choices=[m.name.lower() for m in WriteMode],
                        default=WriteMode.COMPOSITE.name.lower(),
                        help="composite: write the sampled input; visualize: write the grey escape value")
    parser.add_argument("--input", dest="input_path",
                        help="frame to sample in composite mode")
    parser.add_argument("--filter", choices=[m.name.lower() for m in FilterMode],
                        default=FilterMode.LINEAR.name.lower())
    parser.add_argument("--address", choices=[m.name.lower() for m in AddressMode],
                        default=AddressMode.CLAMP_TO_EDGE.name.lower())
    parser.add_argument("--precision", choices=sorted(PRECISIONS), default="f32")
    parser.add_argument("--backend", choices=[b.name.lower() for b in BackendType],
                        default=BackendType.AUTO.name.lower())
    parser.add_argument("-o", "--output", default="escape_time.png")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def settings_from_args(args: argparse.Namespace) -> RenderSettings:
    return RenderSettings(
        max_iter=args.max_iter,
        precision=PRECISIONS[args.precision],
        mode=WriteMode[args.mode.upper()],
        sampler=SamplerConfig(filter=FilterMode[args.filter.upper()],
                              address=AddressMode[args.address.upper()]),
        backend=args.backend.upper(),
    )


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = settings_from_args(args)
    if settings.mode is WriteMode.COMPOSITE and not args.input_path:
        parser.error("--input is required in composite mode")

    surfaces = PingPongSurfaces(args.width, args.height, precision=settings.precision)
    if args.input_path:
        with Image.open(args.input_path) as img:
            surfaces.load(np.asarray(img.convert("RGBA")))

    with PostProcessManager(settings) as manager:
        frame = manager.render_surfaces(surfaces)
        logger.info("Rendered %dx%d frame on %s", args.width, args.height, manager.backend.name)

    Image.fromarray(frame).save(args.output)
    logger.info("Saved %s", args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
