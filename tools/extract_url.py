import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

if __package__ in {None, ""}:
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from unspin.config import get_settings  # noqa: E402
from unspin.services.exceptions import InvalidInput  # noqa: E402
from unspin.services.orchestrator import ExtractionPipeline  # noqa: E402
from unspin.utils.logging_config import setup_logging  # noqa: E402


def extract(url, respect_robots=True):
    """Runs the pipeline once and returns the result as a dict."""
    settings = get_settings()
    if not respect_robots:
        settings = settings.model_copy(update={"robots_enabled": False})
    pipeline = ExtractionPipeline(settings=settings)
    return pipeline.extract(url).to_dict()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Extract a news article and print it as JSON.")
    parser.add_argument("url", help="Absolute http(s) URL of the article.")
    parser.add_argument(
        "--no-robots",
        action="store_true",
        help="Skip the robots.txt check (for debugging your own sites only).",
    )
    args = parser.parse_args()

    load_dotenv()
    setup_logging()

    try:
        result = extract(args.url, respect_robots=not args.no_robots)
    except InvalidInput as exc:
        print(f"Error: {exc}")
        sys.exit(2)

    print(json.dumps(result, indent=2, ensure_ascii=False))
