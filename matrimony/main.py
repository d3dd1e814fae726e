import os
import time
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pythonjsonlogger import jsonlogger
from . import core
from .errors import MatrimonyError
from .routes import router

logger = logging.getLogger('matrimony')


def configure_logging(level: str = None):
    """JSON lines on stderr for every ``matrimony.*`` logger"""
    if any(isinstance(h.formatter, jsonlogger.JsonFormatter) for h in logger.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    logger.addHandler(handler)
    logger.setLevel(level or os.getenv('LOG_LEVEL', 'INFO'))


configure_logging()

app = FastAPI(title="Matrimony Messaging API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',')],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(router, prefix="/api")


@app.exception_handler(MatrimonyError)
async def matrimony_error_handler(request: Request, exc: MatrimonyError):
    logger.info({'msg': 'request_refused', 'path': request.url.path, 'error': exc.code, 'detail': exc.detail})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get('/healthz')
async def healthz():
    return {'status': 'ok'}


@app.middleware('http')
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info({
        'msg': 'request',
        'method': request.method,
        'path': request.url.path,
        'status': response.status_code,
        'duration_ms': round((time.perf_counter() - started) * 1000, 1),
    })
    return response


@app.on_event("startup")
async def startup():
    # None of these may keep the API from serving
    steps = (
        ('redis', core.redis_startup),
        ('kafka', core.kafka_startup),
        ('kafka_topics', core.create_kafka_topics),
    )
    for name, step in steps:
        try:
            await step()
        except Exception as e:
            logger.warning({'msg': f'{name}_start_failed', 'error': str(e)})
    core.init_metrics()


@app.on_event("shutdown")
async def shutdown():
    await core.shutdown_connections()
