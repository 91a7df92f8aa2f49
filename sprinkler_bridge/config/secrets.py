import os


PASSWORD_ENV_VAR = "OPENSPRINKLER_PASSWORD"
PASSWORD_MD5_ENV_VAR = "OPENSPRINKLER_PASSWORD_MD5"


def get_secret(key: str, default: str | None = None) -> str | None:
    """Returns the secret from the environment, or the default when it is not set."""
    value = os.environ.get(key)
    if value:
        return value
    return default


def password_from_env() -> dict | None:
    """
    Returns a password section built from the environment, or None.
    A pre-hashed password wins over a plain one.
    """
    md5 = get_secret(PASSWORD_MD5_ENV_VAR)
    if md5:
        return {"md5": md5}
    plain = get_secret(PASSWORD_ENV_VAR)
    if plain:
        return {"plain": plain}
    return None
