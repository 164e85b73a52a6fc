"""
Batch compositing from a folder.

Images are read in file-name order; consecutive files form a pair
(an odd trailing file is skipped), or every file stands alone in
single mode. Jobs go through the background worker exactly like
browser uploads do.
"""
import argparse
import logging
import os
import queue
import uuid
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from tqdm import tqdm

# Load environment variables first
load_dotenv()

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from ..models.image import Image
from ..pipeline.worker import ProcessingWorker
from ..services.image_service import ImageService

logger = logging.getLogger(__name__)

OUTPUT_EXT = os.getenv("OUTPUT_IMG_EXT", ".jpg")


def _to_buffer(image_service: ImageService, img: Image) -> dict:
    return {"data": image_service.to_rgba_buffer(img), "width": img.width, "height": img.height}


def build_jobs(images: List[Image], single: bool, image_service: ImageService) -> List[dict]:
    """One worker message per pair (or per image in single mode)."""
    if single:
        return [
            {"id": i, "type": "processSingle", "data": {"img": _to_buffer(image_service, img)}}
            for i, img in enumerate(images)
        ]
    return [
        {"id": i // 2, "type": "process",
         "data": {"img1": _to_buffer(image_service, images[i]),
                  "img2": _to_buffer(image_service, images[i + 1])}}
        for i in range(0, len(images) - 1, 2)
    ]


def run_batch(
    input_dir: Path,
    output_dir: Path,
    *,
    single: bool = False,
    image_service: Optional[ImageService] = None,
    worker_factory=ProcessingWorker,
) -> dict:
    """
    Process every pair/single in *input_dir* and save composites to
    *output_dir*. Returns {"processed": n, "failed": n, "total": n}.
    """
    image_service = image_service or ImageService()
    images = list(image_service.stream_gallery(input_dir))
    min_images = 1 if single else 2
    if len(images) < min_images:
        raise ValueError(f"Please upload at least {min_images} image{'s' if min_images > 1 else ''}")

    jobs = build_jobs(images, single, image_service)
    total = len(jobs)
    label = "images" if single else "pairs"
    logger.info(f"Starting to process {total} {label} ({len(images)} total images available)")

    replies: queue.Queue = queue.Queue()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    processed = failed = 0
    with worker_factory(replies.put) as worker:
        worker.post_message({"type": "init"})
        for job in jobs:
            worker.post_message(job)

        with tqdm(total=total, desc=label, ncols=70) as progress:
            while processed + failed < total:
                reply = replies.get()
                msg_type = reply.get("type")

                if msg_type == "modelLoaded":
                    logger.info("Worker model loaded successfully")
                elif msg_type == "debug":
                    logger.debug(f"Detection Debug: {reply['data']}")
                elif msg_type == "processed":
                    buf = reply["imageData"]
                    result = image_service.from_rgba_buffer(buf["data"], buf["width"], buf["height"])
                    result.path = output_dir / f"composite_{reply.get('id', processed)}_{uuid.uuid1().hex[:8]}{OUTPUT_EXT}"
                    image_service.save(result)
                    processed += 1
                    progress.update(1)
                elif msg_type == "error":
                    if "id" in reply:
                        logger.error(f"Job {reply['id']} failed: {reply['error']}")
                        failed += 1
                        progress.update(1)
                    else:
                        # init failures carry no job id
                        logger.error(f"Worker error: {reply['error']}")

    logger.info(f"Processed {processed} of {total} {label}, {failed} failed")
    return {"processed": processed, "failed": failed, "total": total}


def main(argv=None):
    ap = argparse.ArgumentParser(description="Composite product photos into uniform side-by-side images")
    ap.add_argument("input_dir", help="folder with product photos")
    ap.add_argument("--output", default=os.getenv("COMPOSITE_DIR_PATH", "data/composites"),
                    help="where composites are written")
    ap.add_argument("--single", action="store_true",
                    help="one composite per image instead of per pair")
    args = ap.parse_args(argv)

    summary = run_batch(Path(args.input_dir), Path(args.output), single=args.single)
    print(f"\nBatch complete: {summary['processed']}/{summary['total']} composites written to {args.output}")
    return 0 if summary["failed"] == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
