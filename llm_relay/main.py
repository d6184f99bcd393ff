# llm_relay/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from llm_relay.core import config
from llm_relay.api.routers.health import router as health_router
from llm_relay.api.routers.providers import router as providers_router
from llm_relay.api.routers.chat import router as chat_router
from llm_relay.services.status import generation_status


def create_app() -> FastAPI:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="LLM Relay", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # one generation per process: routers reach the shared gate through Depends(get_generation_status)
    app.state.generation_status = generation_status

    # Routers
    app.include_router(health_router)
    app.include_router(providers_router)
    app.include_router(chat_router)

    return app


app = create_app()
