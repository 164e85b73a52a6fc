#!/usr/bin/env python3
"""
Product Pair Compositor API Server
Upload product photos, get back uniform side-by-side composites.
"""

import os
import logging
import re
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from .exceptions import DetectionFailedError
from .models.detector_engine import DetectorEngine
from .models.image import Image
from .pipeline.pair_compositor import process_images
from .services.image_service import ImageService
from .services.detection_service import DetectionService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,gif,bmp,webp").split(","))
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "100"))
app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_SIZE_MB * 1024 * 1024

image_service = ImageService()
_detection_service: Optional[DetectionService] = None

logger = logging.getLogger(__name__)


def get_detection_service() -> DetectionService:
    """Load the detector on first use, not at import."""
    global _detection_service
    if _detection_service is None:
        _detection_service = DetectionService(image_service=image_service)
    return _detection_service


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def _upload_order(key: str):
    """image_2 before image_10."""
    match = re.search(r'(\d+)$', key)
    return (int(match.group(1)) if match else float('inf'), key)


def collect_uploads() -> List[Image]:
    """Decode every `image_*` upload, in upload order."""
    keys = sorted((k for k in request.files if k.startswith('image_')), key=_upload_order)
    images = []
    for key in keys:
        file = request.files[key]
        if not file or not allowed_file(file.filename or ''):
            logger.warning(f"Skipping upload {key}: unsupported file {secure_filename(file.filename or '')!r}")
            continue
        images.append(image_service.decode_upload(file.read()))
    return images


def group_images(images: List[Image], single: bool) -> List[List[Image]]:
    if single:
        return [[img] for img in images]
    # An odd trailing image has no partner and is left out
    return [images[i:i + 2] for i in range(0, len(images) - 1, 2)]


@app.route('/api/process', methods=['POST'])
def process():
    """Composite uploaded photos (pairs by default, `mode=single` for singles)."""
    mode = request.form.get('mode', 'pair')
    if mode not in ('pair', 'single'):
        return jsonify({'success': False, 'message': f'Unknown mode: {mode}'}), 400
    single = mode == 'single'

    try:
        images = collect_uploads()
    except ValueError as e:
        logger.warning(f"Upload decoding error: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400

    min_images = 1 if single else 2
    if len(images) < min_images:
        return jsonify({
            'success': False,
            'message': f"Please upload at least {min_images} image{'s' if min_images > 1 else ''}"
        }), 400

    groups = group_images(images, single)
    detection_service = get_detection_service()
    logger.info(f"Starting to process {len(groups)} {'images' if single else 'pairs'} "
                f"({len(images)} total images available)")

    results = []
    for index, group in enumerate(groups):
        try:
            result = process_images(group, detection_service=detection_service, image_service=image_service)
        except DetectionFailedError as e:
            logger.warning(f"Item {index + 1} failed: {e}")
            results.append({'index': index, 'success': False, 'message': str(e)})
            continue

        results.append({
            'index': index,
            'success': True,
            'image': image_service.to_base64(result.image),
            'width': result.image.width,
            'height': result.image.height,
            'brightness_adjustment': result.brightness.adjustment if result.brightness else 0,
            'detections': result.detection_summary(),
        })

    processed = sum(1 for r in results if r['success'])
    return jsonify({
        'success': processed == len(results),
        'mode': mode,
        'processed_count': processed,
        'total': len(results),
        'results': results,
        'message': f"Processed {processed} of {len(results)} {'images' if single else 'pairs'}"
    })


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Product Pair Compositor API is running',
        'model_loaded': DetectorEngine.is_loaded()
    })


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_UPLOAD_SIZE_MB}MB.'}), 413


@app.errorhandler(400)
def bad_request(e):
    """Handle bad request error."""
    return jsonify({'error': 'Bad request'}), 400


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    port = int(os.getenv("API_SERVER_PORT", "5002"))
    logger.info(f"Starting Product Pair Compositor API on port {port} (max upload {MAX_UPLOAD_SIZE_MB}MB)")
    app.run(host='0.0.0.0', port=port, threaded=False)


if __name__ == '__main__':
    main()
