"""
Floor Visualizer: render a garage photo with a new epoxy floor

Reads a photo from disk, sends it through the generation proxy and writes the
edited image next to it (or to --output).

Usage:
    python scripts/visualize_floor.py garage.jpg --style graphite-mix
    python scripts/visualize_floor.py garage.jpg --prompt "blue tile" --proxy-url https://epoxycam.com
"""

import argparse
import asyncio
import base64
import mimetypes
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import Settings  # noqa: E402
from models.epoxy_style import EPOXY_STYLES  # noqa: E402
from services.generation_client import GenerationClient  # noqa: E402


def read_as_data_url(path: Path) -> str:
    mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def write_data_url(data_url: str, path: Path) -> None:
    _, _, encoded = data_url.partition(",")
    path.write_bytes(base64.b64decode(encoded))


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Visualize a new epoxy floor on a garage photo")
    parser.add_argument("image", type=Path, help="Path to the garage photo")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--style", choices=[s.id for s in EPOXY_STYLES], help="Catalog style id")
    source.add_argument("--prompt", help="Free-text floor description")
    parser.add_argument("--output", type=Path, help="Where to write the result (default: <image>_floor.png)")
    parser.add_argument("--proxy-url", help="Generation proxy base URL (overrides PROXY_URL)")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    overrides = {"PROXY_URL": args.proxy_url} if args.proxy_url else {}
    client = GenerationClient(Settings(**overrides))

    image_data_url = read_as_data_url(args.image)
    print(f"🖼️  Sending {args.image.name} to {client.base_url} ...")

    if args.style:
        result = await client.generate_for_style(image_data_url, args.style)
    else:
        result = await client.generate(image_data_url, args.prompt)

    if not result.success:
        print(f"❌ {result.error}")
        return 1

    output = args.output or args.image.with_name(f"{args.image.stem}_floor.png")
    write_data_url(result.image_data_url, output)
    print(f"✅ Saved visualization to {output} ({result.attempts} attempt(s))")
    return 0


def main(argv=None) -> int:
    load_dotenv(Path(__file__).parent.parent / ".env")
    args = parse_args(argv)
    if not args.image.exists():
        print(f"❌ Image not found: {args.image}")
        return 1
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
