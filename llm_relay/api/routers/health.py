from fastapi import APIRouter, Depends

from llm_relay.api.deps import get_generation_status
from llm_relay.providers import registry
from llm_relay.services.status import GenerationStatus

router = APIRouter(tags=["meta"])

@router.get("/health")
def health(status: GenerationStatus = Depends(get_generation_status)):
    return {
        "status": "ok",
        "providers": len(registry.list_providers()),
        "loading": status.loading,
    }
