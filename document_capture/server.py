"""
HTTP adapter: detection and rectification of uploaded photos
"""

import json
import logging
import os
from typing import Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from .config import PipelineConfig
from .detector import QuadrilateralDetector
from .enhancer import EnhancementMode, ImageEnhancer
from .errors import InvalidFrameError, InvalidQuadrilateralError, ScannerError
from .geometry import Quadrilateral
from .rectifier import PerspectiveRectifier
from .utils import decode_image, encode_png, setup_logging

logger = logging.getLogger(__name__)

MEGABYTE = (2 ** 10) ** 2


def _read_upload():
    upload = request.files.get('file')
    if upload is None:
        raise InvalidFrameError("No file uploaded, expected multipart field 'file'")
    return decode_image(upload.read())


def _parse_corners(raw: str) -> Quadrilateral:
    try:
        points = json.loads(raw)
    except ValueError as e:
        raise InvalidQuadrilateralError(f"Corners are not valid JSON: {e}")
    return Quadrilateral.from_points(points)


def create_app(config: Optional[PipelineConfig] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Pipeline settings (default: read from the environment)

    Returns:
        Configured Flask app
    """
    config = config or PipelineConfig.from_env()

    app = Flask(__name__)
    CORS(app)

    # Set the maximum upload size to 50MB
    app.config['MAX_CONTENT_LENGTH'] = 50 * MEGABYTE

    detector = QuadrilateralDetector(
        min_area_ratio=config.min_area_ratio,
        approx_epsilon_factor=config.approx_epsilon_factor,
        edge_method=config.edge_method,
    )
    rectifier = PerspectiveRectifier()
    enhancer = ImageEnhancer()

    @app.errorhandler(ScannerError)
    def handle_scanner_error(e):
        logger.warning("Request rejected: %s", e.message)
        return jsonify(e.to_dict()), 400

    @app.route('/is-available', methods=['GET'])
    def is_available():
        return jsonify(isAvailable=True), 200

    @app.route('/detect', methods=['POST'])
    def detect():
        image = _read_upload()
        quad = detector.detect(image)
        return jsonify(
            found=quad is not None,
            corners=quad.to_list() if quad is not None else None,
        ), 200

    @app.route('/rectify', methods=['POST'])
    def rectify():
        image = _read_upload()
        # Form field first, then the query string, then the configured default
        mode = EnhancementMode.parse(
            request.form.get('enhance') or request.args.get('enhance') or config.enhancement
        )

        raw_corners = request.form.get('corners')
        if raw_corners:
            quad = _parse_corners(raw_corners)
        else:
            quad = detector.detect(image)
            if quad is None:
                return jsonify(message="No document found", error_code="NO_DOCUMENT"), 404

        rectified = enhancer.enhance(rectifier.rectify(image, quad), mode)
        return Response(encode_png(rectified), mimetype='image/png')

    return app


def main():
    # from_env also loads .env, so PORT and HOST below see its values
    config = PipelineConfig.from_env()
    setup_logging(config.log_level)

    port = int(os.getenv("PORT", 5000))
    host = os.getenv("HOST", None)

    app = create_app(config)
    app.run(host=host, port=port)


if __name__ == '__main__':
    main()
