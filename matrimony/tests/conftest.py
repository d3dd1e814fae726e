import os
import tempfile
import pytest
import pytest_asyncio

# Configure test environment before the engine is created on import
_DB_DIR = tempfile.mkdtemp(prefix='matrimony-tests-')
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault('JWT_SECRET', 'test-secret')

from matrimony.models import AsyncSessionLocal, engine, init_models, drop_models  # noqa: E402
from matrimony.models.users import User  # noqa: E402
from matrimony.auth import create_access_token  # noqa: E402


@pytest_asyncio.fixture(autouse=True)
async def database():
    await init_models()
    yield
    await drop_models()
    await engine.dispose()


class RecordingNotifier:
    """Stands in for NotificationDispatcher and remembers what it was told."""

    def __init__(self):
        self.sent = []

    async def notify(self, user_id, kind, payload):
        self.sent.append((user_id, kind, payload))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_user():
    counter = {'n': 0}

    async def _make_user(first_name='Test', last_name='User', profile_active=True, id_verified=True, email=None):
        counter['n'] += 1
        async with AsyncSessionLocal() as session:
            user = User(
                email=email or f"user{counter['n']}@example.com",
                first_name=first_name,
                last_name=last_name,
                profile_active=profile_active,
                id_verified=id_verified,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make_user


@pytest.fixture
def auth_header():
    def _auth_header(user):
        return {'Authorization': f"Bearer {create_access_token(user.id)}"}
    return _auth_header
