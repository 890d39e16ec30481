"""Message service — direct notes between accounts."""

from typing import Optional

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.db.models import Account, Message
from ticktee.services.errors import AuthorizationError, NotFoundError

logger = structlog.get_logger()


class MessageService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def send_message(
        self, from_account_id: int, to_account_id: int, content: str
    ) -> Message:
        recipient = await self.db.get(Account, to_account_id)
        if not recipient:
            raise NotFoundError("Recipient not found")

        message = Message(
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            content=content,
            is_read=False,
        )
        self.db.add(message)
        await self.db.flush()
        await self.db.commit()

        logger.info(
            "messages.sent",
            message_id=message.id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
        )
        return message

    async def get_message(self, message_id: int) -> Optional[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.id == message_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_for_account(self, account_id: int) -> list[Message]:
        """Everything the account sent or received, oldest first."""
        result = await self.db.execute(
            select(Message)
            .where(
                or_(
                    Message.from_account_id == account_id,
                    Message.to_account_id == account_id,
                )
            )
            .order_by(Message.created_at, Message.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def conversation(self, account_id: int, other_account_id: int) -> list[Message]:
        result = await self.db.execute(
            select(Message)
            .where(
                or_(
                    and_(
                        Message.from_account_id == account_id,
                        Message.to_account_id == other_account_id,
                    ),
                    and_(
                        Message.from_account_id == other_account_id,
                        Message.to_account_id == account_id,
                    ),
                )
            )
            .order_by(Message.created_at, Message.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def mark_read(self, message_id: int, account_id: int) -> Message:
        """Flip is_read. Only the recipient may do this."""
        message = await self.get_message(message_id)
        if not message:
            raise NotFoundError("Message not found")
        if message.to_account_id != account_id:
            raise AuthorizationError("Cannot mark this message as read")

        message.is_read = True
        await self.db.commit()
        return message
