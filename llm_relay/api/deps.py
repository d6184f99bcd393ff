from fastapi import Request
from llm_relay.services.status import GenerationStatus

def get_generation_status(request: Request) -> GenerationStatus:
    return request.app.state.generation_status
