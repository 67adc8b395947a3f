import argparse
import logging
import sys

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from pipeline.batch_scorer import score_gallery
from services.image_service import ImageService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Score every artwork in a folder for AR tracking suitability."
    )
    parser.add_argument("folder", help="Folder containing PNG/JPEG artwork")
    parser.add_argument("-r", "--recursive", action="store_true", help="Descend into sub-folders")
    parser.add_argument("-p", "--persist", action="store_true",
                        help="Store each {score, label, debug} record in SCORES_DIR_PATH")
    parser.add_argument("-m", "--min-score", type=int, default=None,
                        help="Exit with status 1 if any image scores below this")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)

    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    image_service = ImageService()
    try:
        gallery = image_service.stream_gallery(args.folder, recursive=args.recursive)
        scored = score_gallery(gallery, persist=args.persist)
    except NotADirectoryError as e:
        logging.getLogger(__name__).error(f"Not a directory: {e}")
        return 2

    if args.min_score is not None and any(r.score < args.min_score for _, r in scored):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
