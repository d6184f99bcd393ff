from typing import List

from fastapi import APIRouter

from llm_relay.providers import registry
from llm_relay.schemas.chat import ProviderDescription

router = APIRouter(tags=["providers"])

@router.get("/providers", response_model=List[ProviderDescription])
def list_providers() -> List[ProviderDescription]:
    return [
        ProviderDescription(
            id=spec.identifier,
            name=spec.name,
            stream=spec.stream,
            native_web_search=spec.native_web_search,
            options=dict(spec.default_options),
        )
        for spec in registry.list_providers()
    ]
