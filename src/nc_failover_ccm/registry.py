"""Tiny controller registry dispatching cluster events."""

from __future__ import annotations

from typing import Dict, Union

from .controllers import CloudController
from .events import NodeRefresh, ServiceDelete, ServiceUpsert

Event = Union[ServiceUpsert, ServiceDelete, NodeRefresh]


class ControllerRegistry:
    """Dispatch cluster events to registered controllers."""

    def __init__(self) -> None:
        self._controllers: Dict[str, CloudController] = {}

    def register(self, name: str, controller: CloudController) -> None:
        if name in self._controllers:
            raise ValueError(f"controller '{name}' already registered")
        self._controllers[name] = controller

    def unregister(self, name: str) -> None:
        self._controllers.pop(name, None)

    def handle(self, event: Event) -> None:
        if isinstance(event, ServiceUpsert):
            for controller in self._controllers.values():
                controller.on_service_upsert(event.service, event.nodes)
        elif isinstance(event, ServiceDelete):
            for controller in self._controllers.values():
                controller.on_service_delete(event.service)
        elif isinstance(event, NodeRefresh):
            for controller in self._controllers.values():
                controller.on_node_refresh(event.node)
        else:
            raise TypeError(f"Unsupported event type: {type(event)!r}")
