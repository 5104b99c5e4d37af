# mipsasm/app.py
from flask import Flask, request, jsonify
from flask_cors import CORS
import logging

from mipsasm.mips_assembler import MipsAssembler
from mipsasm.mips_consts import DEFAULT_ORIGIN
from mipsasm.mips_errors import NumberFormat
from mipsasm.mips_packer import WORD_SIZE, pack_word
from mipsasm.mips_parser import parse_number

logger = logging.getLogger(__name__)


def _resolve_origin(value, default):
    """Accepts an integer or a numeric literal string ('0x400000') in 0..0xFFFFFFFF."""
    if value is None:
        return default
    if isinstance(value, bool):
        raise NumberFormat(str(value))
    if isinstance(value, int):
        origin = value
    else:
        literal = str(value).strip()
        if literal.startswith('-'):
            raise NumberFormat(literal)
        # Literals parse as signed 32-bit; the origin is an unsigned address
        origin = parse_number(literal) & 0xFFFFFFFF
    if not 0 <= origin <= 0xFFFFFFFF:
        raise NumberFormat(str(value))
    return origin


def _format_result(result):
    image = result["image"]
    return {
        "image": image.hex(),
        "words": [image[i:i + WORD_SIZE].hex() for i in range(0, len(image), WORD_SIZE)],
        "machine_code": [
            {"line": line_num, "hex": f"0x{pack_word(enc):08x}", "bin": f"{pack_word(enc):032b}"}
            for line_num, enc in result["encodings"]
        ],
        "labels": {name: f"0x{address:08x}" for name, address in result["labels"].items()},
        "text_size": result["text_size"],
        "errors": result["errors"],
        "warnings": result["warnings"],
    }


def create_app(config=None):
    app = Flask(__name__)
    app.config.setdefault("ASSEMBLER_ORIGIN", DEFAULT_ORIGIN)
    app.config.setdefault("CORS_ORIGINS", "http://localhost:3000")
    app.config.from_prefixed_env("MIPSASM")
    if config:
        app.config.update(config)

    # Adjust CORS for your frontend origin if different
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})

    @app.route('/')
    def index():
        return "MIPS assembler backend is running!"

    @app.route('/api/ping', methods=['GET'])
    def ping():
        logger.debug("Ping endpoint called")
        return jsonify({"message": "pong"})

    @app.route('/api/assemble', methods=['POST'])
    def handle_assemble():
        data = request.get_json(silent=True)
        if not data or 'assembly' not in data:
            return jsonify({"errors": [{"message": "Missing 'assembly' key in request."}]}), 400
        try:
            origin = _resolve_origin(data.get('origin'), _resolve_origin(app.config["ASSEMBLER_ORIGIN"], DEFAULT_ORIGIN))
        except NumberFormat as e:
            return jsonify({"errors": [{"message": f"Invalid origin: {e}"}]}), 400

        try:
            assembly_code = data['assembly']
            logger.debug(f"Received assembly for assembly: {assembly_code[:100]}...")
            result = MipsAssembler(origin=origin).assemble(assembly_code)
            if result['errors']:
                logger.warning(f"Assembly failed: {result['errors']}")
            else:
                logger.debug(f"Assembly successful. Image size: {len(result['image'])} bytes")
            return jsonify(_format_result(result))
        except Exception as e:
            logger.error(f"Error during assembly: {e}", exc_info=True)
            return jsonify({"errors": [{"message": f"Internal server error during assembly: {e}"}]}), 500

    return app


if __name__ == '__main__':
    logging.basicConfig(level=logging.DEBUG)  # Use DEBUG for development
    create_app().run(debug=True, port=5001)
