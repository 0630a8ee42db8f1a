"""
WebSocket event handlers.

Parses inbound frames, dispatches them to the chat, notification and
read-state handlers, and pushes the resulting frames through the
connection manager.
"""

import json
import logging
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from mercadito_backend.business_logic.messages import create_chat_message, mark_message_as_read
from mercadito_backend.business_logic.notifications import mark_notification_as_read, send_direct_notification
from mercadito_backend.business_logic.realtime import build_initial_snapshot
from mercadito_backend.database import session_scope
from mercadito_backend.exceptions import MercaditoException
from mercadito_backend.repositories import RepositoryError
from mercadito_backend.settings import settings
from mercadito_backend.websocket.connection_manager import Connection, ConnectionManager
from mercadito_types.websocket import (
    parse_client_event,
    error_event,
    WSChatSend,
    WSNotificationSend,
    WSChatRead,
    WSNotificationRead,
    WSInitData,
    WSChatNew,
    ChatNewData,
    WSChatSent,
    ChatSentData,
    WSNotificationNew,
    WSChatReadUpdate,
    ChatReadUpdateData,
    WSNotificationReadConfirm,
    NotificationReadData,
)

logger = logging.getLogger(__name__)

STORAGE_FAILURE_MESSAGE = "Could not process the request, please retry"


class EventRouter:
    """
    Routes frames of one or many connections to their handlers.

    Frames of a single connection are handled one at a time by the
    endpoint's receive loop. Storage work runs in the threadpool inside its
    own transaction and has committed before anything is pushed.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        session_factory: Optional[Callable[[], Session]] = None,
        enforce_membership: Optional[bool] = None,
    ):
        self.manager = manager
        self._session_factory = session_factory
        self._enforce_membership = (
            enforce_membership if enforce_membership is not None
            else settings.WS_ENFORCE_CONVERSATION_MEMBERSHIP
        )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _in_session(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        with session_scope(self._session_factory) as db:
            return fn(*args, db=db, **kwargs)

    async def _run_db(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        return await run_in_threadpool(self._in_session, fn, *args, **kwargs)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def send_initial_snapshot(self, connection: Connection) -> bool:
        """
        Send ``init:data`` to a freshly admitted connection.

        A failure is logged and the connection stays usable without a snapshot.
        """
        try:
            snapshot = await self._run_db(build_initial_snapshot, connection.user_id)
        except Exception as e:
            logger.error(f"Snapshot for user {connection.user_id} failed: {e}", exc_info=True)
            return False

        return await self.manager.send_to_connection(connection, WSInitData(data=snapshot).to_wire())

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, connection: Connection, raw: Union[str, bytes, dict]) -> None:
        """Handle one inbound frame. Never raises for client mistakes."""
        user_id = connection.user_id
        self.manager.metrics.message_received()

        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning(f"Dropping non-JSON frame from user={user_id}: {e}")
                return

        if not isinstance(raw, dict):
            logger.warning(f"Dropping non-object frame from user={user_id}")
            return

        try:
            event = parse_client_event(raw)
        except ValidationError as e:
            logger.info(f"Invalid {raw.get('type')} payload from user={user_id}: {e.error_count()} errors")
            await self.manager.send_to_connection(
                connection, error_event(f"Invalid payload for {raw.get('type')}")
            )
            return

        if event is None:
            logger.warning(f"Dropping unknown event type {raw.get('type')!r} from user={user_id}")
            return

        try:
            if isinstance(event, WSChatSend):
                await self.handle_chat_send(connection, event)

            elif isinstance(event, WSNotificationSend):
                await self.handle_notification_send(connection, event)

            elif isinstance(event, WSChatRead):
                await self.handle_chat_read(connection, event)

            elif isinstance(event, WSNotificationRead):
                await self.handle_notification_read(connection, event)

        except MercaditoException as e:
            message = e.to_error_response().message
            logger.info(f"{event.type} from user={user_id} rejected: {e.error_code} {message}")
            await self.manager.send_to_connection(connection, error_event(message))

        except (SQLAlchemyError, RepositoryError) as e:
            logger.error(f"Storage failure handling {event.type} from user={user_id}: {e}", exc_info=True)
            await self.manager.send_to_connection(connection, error_event(STORAGE_FAILURE_MESSAGE))

        except Exception as e:
            logger.error(f"Unexpected error handling {event.type} from user={user_id}: {e}", exc_info=True)
            await self.manager.send_to_connection(connection, error_event(STORAGE_FAILURE_MESSAGE))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def handle_chat_send(self, connection: Connection, event: WSChatSend):
        """Persist, push ``chat:new`` to the recipient, then ack the sending connection."""
        result = await self._run_db(
            create_chat_message,
            conversation_id=event.conversation_id,
            content=event.content,
            permissions=connection.principal,
            enforce_membership=self._enforce_membership,
        )

        delivered = await self.manager.send_to_user(
            result.recipient_id,
            WSChatNew(data=ChatNewData(message=result.message, notification=result.notification)).to_wire(),
        )
        logger.debug(f"chat:new for message {result.message.id} delivered to {delivered} connections of user {result.recipient_id}")

        await self.manager.send_to_connection(
            connection,
            WSChatSent(data=ChatSentData(message=result.message)).to_wire(),
        )

    async def handle_notification_send(self, connection: Connection, event: WSNotificationSend):
        notification = await self._run_db(
            send_direct_notification,
            user_id=event.user_id,
            title=event.title,
            body=event.body,
            type_id=event.type_id,
        )

        delivered = await self.manager.send_to_user(
            event.user_id,
            WSNotificationNew(data=notification).to_wire(),
        )
        logger.info(f"User {connection.user_id} notified user {event.user_id} (notification {notification.id}, delivered={delivered})")

    async def handle_chat_read(self, connection: Connection, event: WSChatRead):
        receipt = await self._run_db(
            mark_message_as_read,
            event.message_id,
            permissions=connection.principal,
            enforce_membership=self._enforce_membership,
        )
        if receipt is None:
            return

        await self.manager.send_to_user(
            receipt.sender_id,
            WSChatReadUpdate(data=ChatReadUpdateData(
                message_id=receipt.message_id,
                conversation_id=receipt.conversation_id,
                read_by="receiver",
            )).to_wire(),
        )
        await self.manager.send_to_user(
            receipt.receiver_id,
            WSChatReadUpdate(data=ChatReadUpdateData(
                message_id=receipt.message_id,
                conversation_id=receipt.conversation_id,
                read_by="self",
            )).to_wire(),
        )

    async def handle_notification_read(self, connection: Connection, event: WSNotificationRead):
        notification = await self._run_db(
            mark_notification_as_read,
            event.notification_id,
            permissions=connection.principal,
        )
        if notification is None:
            return

        await self.manager.send_to_connection(
            connection,
            WSNotificationReadConfirm(data=NotificationReadData(notification_id=notification.id)).to_wire(),
        )
