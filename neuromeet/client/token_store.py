"""Bearer credential holder shared by reference with the HTTP client."""


class TokenStore:
    def __init__(self, token: str | None = None):
        self._token = token or None

    def get_token(self) -> str | None:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token or None

    def clear_token(self) -> None:
        self._token = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None
