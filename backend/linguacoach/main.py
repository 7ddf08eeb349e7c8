import asyncio
import logging
import os
import signal
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import init_db
from .error_handlers import register_error_handlers
from .log import setup_logging
from .settings import settings
from .routers import health
from .routers import auth, google_auth
from .routers import analyze, mistakes, translate
from .routers import interview, roleplay, debate, tutor
from .routers import history, daily, flashcards

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="LinguaCoach API")
app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
register_error_handlers(app)

app.include_router(health.router)
for module in (auth, google_auth, analyze, mistakes, translate, interview, roleplay, debate, tutor, history, daily, flashcards):
	app.include_router(module.router, prefix="/api")


@app.get("/", include_in_schema=False)
def root():
	return {"msg": "LinguaCoach API is running", "environment": settings.environment}


def _terminate_outside_production() -> None:
	if not settings.is_production:
		logger.critical("shutting down after unhandled fault")
		os.kill(os.getpid(), signal.SIGTERM)


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
	exc = context.get("exception")
	logger.error("unhandled fault in event loop: %s", context.get("message"), exc_info=exc)
	_terminate_outside_production()


def _excepthook(exc_type, exc, tb) -> None:
	logger.critical("uncaught exception", exc_info=(exc_type, exc, tb))
	_terminate_outside_production()


@app.on_event("startup")
async def startup_event():
	asyncio.get_running_loop().set_exception_handler(_loop_exception_handler)
	sys.excepthook = _excepthook
	init_db()
	logger.info("started in %s mode (AI configured: %s)", settings.environment, bool(settings.llm_api_key))
