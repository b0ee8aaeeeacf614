import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from pixreview.config import settings
from pixreview.errors import ConflictError, ForbiddenError, NotFoundError
from pixreview.models.user import Role, User
from pixreview.services.auth import (
    TOKEN_ALGORITHM,
    UserDirectory,
    authenticate,
    authorize,
    create_token,
)
from pixreview.utils.paths import normalize_path

from helpers import ANA


def test_token_round_trip(data_root):
    user = authenticate(create_token(ANA))

    assert user == ANA
    assert user.start_path == "ProjectA"


def test_tampered_or_foreign_tokens_are_rejected(data_root):
    token = create_token(ANA)
    forged = jwt.encode({"email": "a@x.com", "name": "Ana", "role": "admin",
                         "exp": datetime.now(tz=timezone.utc) + timedelta(days=1)},
                        "other-secret", algorithm=TOKEN_ALGORITHM)

    header, payload, signature = token.split(".")
    assert authenticate(".".join([header, payload, signature[::-1]])) is None
    assert authenticate(forged) is None
    assert authenticate("") is None
    assert authenticate(None) is None


def test_expired_token_is_rejected(data_root):
    issued = datetime.now(tz=timezone.utc) - timedelta(days=settings.token_ttl_days + 1)

    assert authenticate(create_token(ANA, now=issued)) is None


@pytest.mark.parametrize("requested, allowed", [
    ("ProjectA", True),
    ("ProjectA/Sub", True),
    ("/ProjectA/Sub/deep.jpg", True),
    ("ProjectA/", True),
    ("ProjectAX", False),
    ("ProjectA2/file.jpg", False),
    ("ProjectB", False),
    ("ProjectA/../ProjectB", False),
    ("ProjectA/..", False),
    ("ProjectA/Sub/../../ProjectB/x.jpg", False),
    ("", True),
])
def test_start_path_confinement(requested, allowed):
    assert authorize(ANA, requested) is allowed


def test_user_without_start_path_is_unrestricted():
    admin = User(email="root@x.com", name="Root", role=Role.ADMIN)

    assert authorize(admin, "anything/at/all")
    assert not authorize(admin, "anything/../../etc")


def test_normalize_path_refuses_parent_segments():
    assert normalize_path("/ProjectA/./Sub//") == "ProjectA/Sub"
    with pytest.raises(ForbiddenError):
        normalize_path("ProjectA/../ProjectB")


def test_user_directory_crud(tmp_path):
    directory = UserDirectory(tmp_path / "users.json")
    assert directory.users() == []

    directory.create(ANA)
    with pytest.raises(ConflictError):
        directory.create(ANA)

    renamed = ANA.model_copy(update={"name": "Ana Maria"})
    directory.update("a@x.com", renamed)
    assert directory.find("a@x.com").name == "Ana Maria"

    with pytest.raises(NotFoundError):
        directory.update("ghost@x.com", renamed)

    directory.delete("a@x.com")
    directory.delete("a@x.com")
    assert directory.users() == []


def test_user_directory_file_format(tmp_path):
    path = tmp_path / "users.json"
    UserDirectory(path).create(ANA)

    data = json.loads(path.read_text())
    assert data == {"users": [{"email": "a@x.com", "name": "Ana", "role": "user", "startPath": "ProjectA"}]}


def test_unreadable_user_directory_yields_no_users(tmp_path):
    path = tmp_path / "users.json"
    path.write_text("{not json")

    assert UserDirectory(path).users() == []
