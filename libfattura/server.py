"""Minimal WSGI service wrapping the conversion pipeline.

Routes:
    POST /convert  multipart upload of one XML file, answers with the PDF
    GET  /health   liveness check
"""

import json
import logging
from typing import Any

from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, Rule
from werkzeug.serving import make_server
from werkzeug.wrappers import Request, Response
from werkzeug.wsgi import wrap_file

from .config import AppConfig
from .errors import MalformedInvoiceError, ParseError
from .pipeline import xml_to_pdf

logger = logging.getLogger(__name__)


def _json_response(payload: dict[str, Any], status: int = 200) -> Response:
    return Response(json.dumps(payload), status=status, mimetype="application/json")


class ConversionService:
    def __init__(self, config: AppConfig):
        """Initialize the service.

        Args:
            config: Application configuration; its display and extraction
                sections are used for every conversion.
        """
        self.config = config
        self.url_map = Map(
            [
                Rule("/convert", endpoint="convert", methods=["POST"]),
                Rule("/health", endpoint="health", methods=["GET"]),
            ]
        )

    def on_health(self, request: Request) -> Response:
        return _json_response({"status": "ok"})

    def on_convert(self, request: Request) -> Response:
        upload = next(iter(request.files.values()), None)
        if upload is None:
            return _json_response({"error": "No file uploaded"}, status=400)

        logger.debug(f"Converting uploaded file {upload.filename}")
        try:
            pdf = xml_to_pdf(upload.read(), self.config.display, self.config.extraction.tolerance)
        except (ParseError, MalformedInvoiceError) as e:
            logger.warning(f"Failed to convert {upload.filename}: {e}")
            return _json_response({"error": f"Failed to convert XML to PDF: {e}"}, status=422)

        response = Response(wrap_file(request.environ, pdf), mimetype="application/pdf", direct_passthrough=True)
        response.headers["Content-Disposition"] = "attachment; filename=invoice.pdf"
        return response

    def dispatch_request(self, request: Request) -> Response:
        adapter = self.url_map.bind_to_environ(request.environ)
        try:
            endpoint, values = adapter.match()
            return getattr(self, f"on_{endpoint}")(request, **values)
        except HTTPException as e:
            return e.get_response(request.environ)

    def wsgi_app(self, environ, start_response):
        request = Request(environ)
        response = self.dispatch_request(request)
        return response(environ, start_response)

    def __call__(self, environ, start_response):
        return self.wsgi_app(environ, start_response)


def serve(config: AppConfig) -> None:
    """Run the service until interrupted."""
    host, port = config.server.host, config.server.port
    server = make_server(host, port, ConversionService(config))
    logger.info(f"Server listening at http://{host}:{port}")
    try:
        server.serve_forever()
    finally:
        server.server_close()
