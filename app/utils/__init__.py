__all__ = [
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "authenticate_user",
    "get_current_user",
    "oauth2_scheme",
    "round_half_up",
    "expected_price",
    "utcnow",
    "to_utc_naive",
]


def __getattr__(name):
    if name in {
        "verify_password",
        "get_password_hash",
        "create_access_token",
        "authenticate_user",
        "get_current_user",
        "oauth2_scheme",
    }:
        from . import security as _security
        return getattr(_security, name)
    if name in {"round_half_up", "expected_price"}:
        from . import money as _money
        return getattr(_money, name)
    if name in {"utcnow", "to_utc_naive"}:
        from . import timeutils as _timeutils
        return getattr(_timeutils, name)
    raise AttributeError(f"module 'app.utils' has no attribute '{name}'")
