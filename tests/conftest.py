import pytest

from tests.support.models import make_session


@pytest.fixture
def session(tmp_path):
    session = make_session(tmp_path)
    yield session
    session.close()
