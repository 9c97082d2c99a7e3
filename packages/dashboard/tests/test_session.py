from dashsync.api import ROLE_DASHBOARDS, ApiSession


def test_apply_login_reads_nested_user_and_branch() -> None:
    session = ApiSession(terminal=2)
    accepted = session.apply_login(
        {
            "success": True,
            "token": "abc",
            "data": {"user": {"role": "kitchen", "full_name": "Sana", "username": "sana"}},
            "branch": {"branch_id": 6, "branch_name": "Gulberg"},
        }
    )
    assert accepted
    assert session.role == "kitchen"
    assert session.branch_id == 6
    assert session.branch_name == "Gulberg"
    assert session.fullname == "Sana"
    assert session.username == "sana"
    assert session.terminal == 2
    assert session.dashboard_path == ROLE_DASHBOARDS["kitchen"]
    assert session.auth_headers() == {"Authorization": "Bearer abc"}


def test_boolean_looking_values_are_rejected() -> None:
    session = ApiSession()
    assert not session.apply_login({"token": "abc", "role": "true"})
    assert not session.apply_login({"token": "", "role": "accountant"})
    assert not session.apply_login(["not", "a", "dict"])
    assert session.token is None


def test_unknown_role_falls_back_to_login_page() -> None:
    session = ApiSession()
    assert session.apply_login({"token": "abc", "role": "cashier"})
    assert session.dashboard_path == "/login"


def test_clear_forgets_identity_but_keeps_terminal() -> None:
    session = ApiSession(token="abc", role="super_admin", branch_id=1, terminal=5)
    session.clear()
    assert not session.is_authenticated
    assert session.role is None
    assert session.branch_id is None
    assert session.terminal == 5
