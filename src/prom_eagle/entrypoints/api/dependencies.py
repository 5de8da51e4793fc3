from fastapi import Request
from prometheus_client import CollectorRegistry


def get_registry(request: Request) -> CollectorRegistry:
    return request.app.state.registry
