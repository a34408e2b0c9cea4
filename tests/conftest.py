from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, List, Optional

import pytest

from eventhub.config import Config
from eventhub.constants import EventType
from eventhub.models import Event, User
from eventhub.services.events import EventService
from eventhub.services.profiles import ProfileService
from eventhub.services.registrations import RegistrationService
from eventhub.services.stats import StatsService
from eventhub.storage.db import Database
from eventhub.storage.repositories.events import EventRepository
from eventhub.storage.repositories.registrations import RegistrationRepository
from eventhub.storage.repositories.users import UserRepository

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class MutableClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@dataclass
class FakeUser:
    id: int
    username: str = ""
    full_name: str = ""


@dataclass
class FakeChat:
    id: int


@dataclass
class FakeMessage:
    chat_id: int
    text: str = ""
    chat: FakeChat = field(init=False)
    replies: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        self.chat = FakeChat(self.chat_id)

    async def reply_text(self, text: str, reply_markup: Any = None, **kwargs: Any):
        self.replies.append({"text": text, "reply_markup": reply_markup, "kwargs": kwargs})


@dataclass
class FakeCallbackQuery:
    data: str
    from_user: FakeUser
    message: FakeMessage
    answered: int = 0
    edits: list[dict[str, Any]] = field(default_factory=list)

    async def answer(self, **kwargs: Any):
        self.answered += 1

    async def edit_message_text(self, text: str, reply_markup: Any = None, **kwargs: Any):
        self.edits.append({"text": text, "reply_markup": reply_markup, "kwargs": kwargs})


@dataclass
class FakeUpdate:
    effective_user: Optional[FakeUser]
    effective_chat: FakeChat
    message: Optional[FakeMessage] = None
    callback_query: Optional[FakeCallbackQuery] = None

    @property
    def effective_message(self) -> Optional[FakeMessage]:
        if self.message is not None:
            return self.message
        return self.callback_query.message if self.callback_query else None


class FakeBot:
    def __init__(self):
        self.sent_messages: list[dict[str, Any]] = []
        self.sent_documents: list[dict[str, Any]] = []

    async def send_message(self, chat_id: int, text: str, reply_markup: Any = None, **kwargs: Any):
        self.sent_messages.append({"chat_id": chat_id, "text": text, "reply_markup": reply_markup})
        return SimpleNamespace(message_id=len(self.sent_messages), chat=SimpleNamespace(id=chat_id))

    async def send_document(self, chat_id: int, document: Any, filename: str = "", caption: str = "", **kwargs: Any):
        self.sent_documents.append(
            {"chat_id": chat_id, "document": document, "filename": filename, "caption": caption}
        )
        return SimpleNamespace(message_id=len(self.sent_documents), chat=SimpleNamespace(id=chat_id))


class FakeApplication:
    def __init__(self, bot_data: dict[str, Any]):
        self.bot_data = bot_data


@dataclass
class FakeContext:
    application: FakeApplication
    bot: FakeBot
    user_data: dict[str, Any] = field(default_factory=dict)
    args: Optional[List[str]] = None
    error: Optional[BaseException] = None


def make_message_update(user_id: int, text: str = "", username: str = "", full_name: str = "") -> FakeUpdate:
    user = FakeUser(id=user_id, username=username, full_name=full_name)
    return FakeUpdate(effective_user=user, effective_chat=FakeChat(user_id), message=FakeMessage(user_id, text))


def make_callback_update(user_id: int, data: str, username: str = "", full_name: str = "") -> FakeUpdate:
    user = FakeUser(id=user_id, username=username, full_name=full_name)
    cq = FakeCallbackQuery(data=data, from_user=user, message=FakeMessage(user_id))
    return FakeUpdate(effective_user=user, effective_chat=FakeChat(user_id), callback_query=cq)


def event_fields(**overrides: Any) -> dict[str, Any]:
    fields = {
        "title": "Chess Night",
        "description": "Casual games",
        "location": "Hall A",
        "event_date": "2024-07-01",
        "event_time": "18:30",
        "type": "Social",
        "capacity": 3,
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(NOW)


@pytest.fixture
async def db(tmp_path) -> Database:
    database = Database(str(tmp_path / "test.db"))
    await database.init_db()
    try:
        yield database
    finally:
        await database.close()


@pytest.fixture
async def repos(db: Database):
    return SimpleNamespace(
        user=UserRepository(db),
        event=EventRepository(db),
        reg=RegistrationRepository(db),
    )


@pytest.fixture
async def services(repos, clock):
    return SimpleNamespace(
        profile=ProfileService(repos.user),
        event=EventService(repos.event, repos.reg, clock=clock, page_size=2),
        registration=RegistrationService(repos.event, repos.reg, repos.user, clock=clock),
        stats=StatsService(repos.event, repos.user, repos.reg, clock=clock, recent_limit=10),
    )


@pytest.fixture
def fake_bot() -> FakeBot:
    return FakeBot()


@pytest.fixture
async def bot_data(services, db: Database):
    cfg = Config(bot_token="TEST_TOKEN", admin_ids=[], database_path=":memory:")
    return {
        "config": cfg,
        "db": db,
        "profile_service": services.profile,
        "event_service": services.event,
        "registration_service": services.registration,
        "stats_service": services.stats,
    }


@pytest.fixture
async def context(bot_data, fake_bot: FakeBot) -> FakeContext:
    return FakeContext(application=FakeApplication(bot_data), bot=fake_bot)


async def make_user(services, user_id: int, *types: EventType, username: str = "") -> User:
    await services.profile.ensure_user(user_id, username or f"user{user_id}", f"User {user_id}")
    return await services.profile.update_preferences(user_id, list(types))


@pytest.fixture
async def social_event(services) -> Event:
    return await services.event.create_event(event_fields(), creator_id=100)


@pytest.fixture
async def social_user(services) -> User:
    return await make_user(services, 1, EventType.SOCIAL)
