"""
Network Logs API
================

Ingestion and read API for network-quality measurements.

Endpoints:
- POST /upload      -> store a batch of collection runs (all or nothing)
- GET  /api/logs    -> most recent rows, newest first (cached per limit)
- GET  /api/stats   -> summary statistics over recent rows
- GET  /health      -> liveness + database check

Usage:
    uvicorn netlogs.api.server:app
"""
import json
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from netlogs import __version__
from netlogs.core.config import settings as default_settings
from netlogs.core.context import RequestContext, isoformat_z, utc_now
from netlogs.core.database import SessionLocal
from netlogs.core.errors import (
    IngestError, MalformedPayloadError, MethodNotAllowedError, NotFoundError, PayloadTooLargeError,
)
from netlogs.models.network_log import SCHEMA_VERSION
from netlogs.services.ingest_service import IngestService
from netlogs.services.query_cache import QueryCache
from netlogs.services.query_service import QueryService, parse_hours, parse_limit
from netlogs.services.stats_service import build_stats

JSON_CONTENT_TYPES = ('application/json',)


def _reject_constant(name):
    raise ValueError(f"{name} is not valid JSON")


def decode_json(body: bytes):
    if not body or not body.strip():
        raise MalformedPayloadError('Invalid JSON: empty body')
    try:
        return json.loads(body, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the decoder can follow
        raise MalformedPayloadError('Invalid JSON', details=str(e)) from None


async def read_body(request: Request, max_bytes: int) -> bytes:
    """Read the request body, refusing it once it exceeds max_bytes."""
    declared = request.headers.get('content-length')
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLargeError(f"Request body of {declared} bytes exceeds limit of {max_bytes}")

    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_bytes:
            raise PayloadTooLargeError(f"Request body exceeds limit of {max_bytes} bytes")
        chunks.append(chunk)
    return b''.join(chunks)


def _context(request: Request) -> RequestContext:
    ctx = getattr(request.state, 'ctx', None)
    return ctx or RequestContext.from_headers(request.headers)


def error_response(ctx: RequestContext, err: IngestError, headers=None) -> JSONResponse:
    body = err.to_dict()
    body['request_id'] = ctx.request_id
    body['timestamp'] = isoformat_z(utc_now())
    headers = dict(headers or {})
    headers['X-Request-ID'] = ctx.request_id
    return JSONResponse(status_code=err.status_code, content=body, headers=headers)


def create_app(config=None, session_factory=None, cache: QueryCache = None) -> FastAPI:
    config = config or default_settings
    session_factory = session_factory or SessionLocal

    ingest_service = IngestService(session_factory, max_batch_size=config.MAX_BATCH_SIZE)
    query_service = QueryService(
        session_factory,
        cache=cache if cache is not None else QueryCache(ttl_seconds=config.QUERY_CACHE_TTL_SECONDS),
        timeout=config.STORAGE_TIMEOUT_SECONDS,
    )

    app = FastAPI(
        title='Network Logs API',
        version=__version__,
        description='Ingestion and time-series read API for network quality measurements',
    )
    app.state.ingest_service = ingest_service
    app.state.query_service = query_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_methods=['GET', 'POST', 'OPTIONS'],
        allow_headers=['Content-Type', 'X-Request-ID'],
        expose_headers=['X-Request-ID', 'X-Cache'],
    )

    @app.middleware('http')
    async def request_context(request: Request, call_next):
        ctx = RequestContext.from_headers(request.headers)
        request.state.ctx = ctx
        logging.info(f"{ctx.tag} {request.method} {request.url.path}")
        response = await call_next(request)
        response.headers.setdefault('X-Request-ID', ctx.request_id)
        return response

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.exception_handler(IngestError)
    async def handle_ingest_error(request: Request, exc: IngestError):
        return error_response(_context(request), exc)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            err = MethodNotAllowedError(f"Method {request.method} not allowed on {request.url.path}")
        elif exc.status_code == 404:
            err = NotFoundError(f"No route for {request.url.path}")
        else:
            err = IngestError(str(exc.detail))
            err.status_code = exc.status_code
        return error_response(_context(request), err, headers=exc.headers)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        ctx = _context(request)
        logging.exception(f"{ctx.tag} Unhandled error on {request.method} {request.url.path}")
        return error_response(ctx, IngestError('Internal server error'))

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    @app.post('/upload')
    async def upload(request: Request):
        ctx = _context(request)
        content_type = request.headers.get('content-type', '').split(';')[0].strip().lower()
        if content_type not in JSON_CONTENT_TYPES:
            raise MethodNotAllowedError(
                f"Expected Content-Type application/json, got {content_type or 'none'}"
            )

        payload = decode_json(await read_body(request, config.MAX_BODY_BYTES))
        result = await run_in_threadpool(ingest_service.ingest, payload, ctx)
        return JSONResponse({
            'success': True,
            'inserted': result.inserted,
            'duration_ms': result.duration_ms,
            'request_id': ctx.request_id,
            'timestamp': isoformat_z(utc_now()),
        })

    @app.get('/api/logs')
    async def get_logs(request: Request):
        ctx = _context(request)
        limit = parse_limit(
            request.query_params.get('limit'),
            default=config.QUERY_DEFAULT_LIMIT,
            maximum=config.QUERY_MAX_LIMIT,
        )
        rows, hit = await run_in_threadpool(query_service.recent, limit, ctx)
        return JSONResponse(rows, headers={
            'X-Cache': 'HIT' if hit else 'MISS',
            'Cache-Control': f"public, max-age={query_service.cache.ttl_seconds}",
        })

    @app.get('/api/stats')
    async def get_stats(request: Request):
        ctx = _context(request)
        limit = parse_limit(
            request.query_params.get('limit'),
            default=config.QUERY_DEFAULT_LIMIT,
            maximum=config.QUERY_MAX_LIMIT,
        )
        hours = parse_hours(request.query_params.get('hours'))
        rows = await run_in_threadpool(query_service.window, limit, hours, ctx)
        stats = await run_in_threadpool(build_stats, rows)
        stats['hours'] = hours
        return stats

    @app.get('/health')
    async def health(request: Request):
        healthy = await run_in_threadpool(query_service.ping_database)
        body = {
            'status': 'healthy' if healthy else 'unhealthy',
            'timestamp': isoformat_z(utc_now()),
            'schema_version': SCHEMA_VERSION,
            'checks': {'database': 'healthy' if healthy else 'unhealthy'},
        }
        return JSONResponse(body, status_code=200 if healthy else 503)

    return app


app = create_app()
