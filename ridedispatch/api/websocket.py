"""WebSocket handlers for drivers and observers."""

import json
from typing import Any, Literal
from uuid import UUID, uuid4

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from ridedispatch.engine.notifications import NotificationChannel
from ridedispatch.engine.service import DispatchService
from ridedispatch.errors import ChannelUnavailable
from ridedispatch.models.driver import Location, VehicleClass
from ridedispatch.utils.logging import get_logger

logger = get_logger(__name__)


class DriverMessage(BaseModel):
    """Message sent by a driver client."""

    type: Literal["presence", "location", "accept", "ping"]
    online: bool | None = None
    location: Location | None = None
    vehicle_class: VehicleClass | None = None
    rating: float | None = None
    ride_id: UUID | None = None


class ConnectionManager(NotificationChannel):
    """Manages WebSocket connections and delivers dispatch notifications."""

    def __init__(self) -> None:
        self.driver_connections: dict[str, WebSocket] = {}
        self.observer_connections: dict[str, WebSocket] = {}

    async def connect_driver(self, driver_id: str, websocket: WebSocket) -> None:
        """Accept and register a driver connection."""
        await websocket.accept()
        self.driver_connections[driver_id] = websocket
        logger.info("driver_connected", driver_id=driver_id)

    def disconnect_driver(self, driver_id: str, websocket: WebSocket) -> None:
        """Remove a driver connection unless a newer one replaced it."""
        if self.driver_connections.get(driver_id) is websocket:
            del self.driver_connections[driver_id]
            logger.info("driver_disconnected", driver_id=driver_id)

    async def connect_observer(self, websocket: WebSocket) -> str:
        """Accept and register an observer connection."""
        await websocket.accept()
        observer_id = str(uuid4())
        self.observer_connections[observer_id] = websocket
        logger.info("observer_connected", observer_id=observer_id)
        return observer_id

    def disconnect_observer(self, observer_id: str) -> None:
        if observer_id in self.observer_connections:
            del self.observer_connections[observer_id]
            logger.info("observer_disconnected", observer_id=observer_id)

    async def push_to_driver(self, driver_id: str, payload: dict[str, Any]) -> None:
        websocket = self.driver_connections.get(driver_id)

        if websocket is None:
            raise ChannelUnavailable(driver_id)

        try:
            await websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError) as e:
            self.disconnect_driver(driver_id, websocket)
            raise ChannelUnavailable(driver_id) from e

    async def broadcast(self, event: str, payload: dict[str, Any]) -> None:
        message = {"type": event, **payload}

        for observer_id, websocket in list(self.observer_connections.items()):
            try:
                await websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning(
                    "observer_send_failed",
                    observer_id=observer_id,
                    event=event,
                    error=str(e),
                )
                self.disconnect_observer(observer_id)


# Global connection manager
manager = ConnectionManager()


async def handle_driver_connection(
    websocket: WebSocket,
    driver_id: str,
    service: DispatchService,
) -> None:
    """
    Handle a driver's WebSocket connection.

    Args:
        websocket: WebSocket connection
        driver_id: Authenticated driver identifier
        service: Dispatch service
    """
    await manager.connect_driver(driver_id, websocket)
    await service.connect_driver(driver_id, websocket)

    await websocket.send_json({"type": "connected", "driver_id": driver_id})

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = DriverMessage(**json.loads(data))
                await process_driver_message(driver_id, message, service, websocket)

            except (ValidationError, json.JSONDecodeError) as e:
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": "Invalid message format",
                        "details": str(e),
                    }
                )

            except WebSocketDisconnect:
                raise

            except Exception as e:
                logger.error(
                    "driver_message_error",
                    driver_id=driver_id,
                    error=str(e),
                )
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": "Failed to process message",
                    }
                )

    except WebSocketDisconnect:
        logger.info("driver_client_disconnected", driver_id=driver_id)

    finally:
        manager.disconnect_driver(driver_id, websocket)
        await service.disconnect_driver(websocket)


async def process_driver_message(
    driver_id: str,
    message: DriverMessage,
    service: DispatchService,
    websocket: WebSocket,
) -> None:
    """Apply one driver message and reply on the same socket."""
    if message.type == "ping":
        await websocket.send_json({"type": "pong"})

    elif message.type == "presence":
        online = True if message.online is None else message.online
        if online:
            # Going back online over an open socket re-binds the channel
            manager.driver_connections[driver_id] = websocket

        await service.report_presence(
            driver_id,
            online,
            location=message.location,
            vehicle_class=message.vehicle_class,
            rating=message.rating,
            channel_ref=websocket if online else None,
        )
        await websocket.send_json({"type": "presence_ack", "online": online})

    elif message.type == "location":
        if message.location is None:
            await websocket.send_json({"type": "error", "message": "Location required"})
            return
        service.update_location(driver_id, message.location)

    elif message.type == "accept":
        if message.ride_id is None:
            await websocket.send_json({"type": "error", "message": "ride_id required"})
            return

        result = await service.accept_ride(message.ride_id, driver_id)

        if result.accepted:
            await websocket.send_json(
                {
                    "type": "accepted",
                    "ride": result.ride.model_dump(mode="json"),
                }
            )
        else:
            await websocket.send_json(
                {
                    "type": "rejected",
                    "ride_id": str(message.ride_id),
                    "reason": result.reason.value,
                    "message": result.message,
                }
            )


async def handle_observer_connection(websocket: WebSocket) -> None:
    """Handle a rider or admin console subscribing to dispatch events."""
    observer_id = await manager.connect_observer(websocket)

    await websocket.send_json({"type": "connected", "observer_id": observer_id})

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid message format"})
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        logger.info("observer_client_disconnected", observer_id=observer_id)

    finally:
        manager.disconnect_observer(observer_id)
