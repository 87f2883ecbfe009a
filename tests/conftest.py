import pytest

from ninja_stories import create_app
from ninja_stories.init_db import init_db
from ninja_stories.repositories.user_progress_repository import UserProgressRepository


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "ninja_stories.db")
    init_db(path)
    return path


@pytest.fixture
def repo(db_path):
    return UserProgressRepository(db_path)


@pytest.fixture
def student_id(repo):
    return repo.create_user("kai", "kai@example.com")


@pytest.fixture
def quiz_id(repo):
    return repo.create_quiz("The Brave Little Fox", story_id=1)


@pytest.fixture
def app(db_path):
    return create_app({
        "TESTING": True,
        "WTF_CSRF_ENABLED": False,
        "SECRET_KEY": "test",
        "DATABASE_PATH": db_path,
        "QUIZ_COMPLETION_GOLD": 25,
        "ACHIEVEMENT_POLL_SECONDS": 8,
    })


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, user_id, role="student"):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["role"] = role


@pytest.fixture(name="login")
def login_fixture(client):
    def _login(user_id, role="student"):
        login(client, user_id, role)
    return _login
