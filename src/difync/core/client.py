"""HTTP client for the Dify console API.

Wraps the handful of console endpoints the sync engine needs: login, app
info, app list, DSL export and DSL import.  Every failure, whether a
non-success status or a network error, surfaces as ``DifyAPIError``.
"""

import logging
from typing import Any

import requests

from ..config import Config
from ..errors import DifyAPIError
from ..sync.models import RemoteApp

logger = logging.getLogger(__name__)

APP_LIST_PAGE_SIZE = 100


class DifyClient:
    def __init__(self, config: Config):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.session = self._create_session()
        self._token: str | None = None

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = not self.config.insecure
        session.headers["Content-Type"] = "application/json"
        return session

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/console/api{path}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        allow_status: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> requests.Response:
        """
        Send a request to the console API.

        Responses with status 200 or one of *allow_status* are returned;
        anything else raises ``DifyAPIError``.
        """
        headers = kwargs.pop("headers", {})
        if auth:
            if self._token is None:
                raise DifyAPIError("not authenticated, call login() first")
            headers["Authorization"] = f"Bearer {self._token}"

        url = self._url(path)
        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                timeout=self.config.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise DifyAPIError(
                f"failed to execute {method} {url}: {exc}"
            ) from exc

        if response.status_code != 200 and (
            response.status_code not in allow_status
        ):
            raise DifyAPIError(
                f"API returned error for {method} {url}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise DifyAPIError(
                f"failed to decode response from {response.url}: {exc}"
            ) from exc

    @staticmethod
    def _parse_app(data: Any) -> RemoteApp:
        """
        Build a RemoteApp from an app payload.

        The payload may be wrapped in a ``data`` object or, on older Dify
        releases, carry the fields at the top level.
        """
        if not isinstance(data, dict):
            raise DifyAPIError(
                f"unexpected app payload type: {type(data).__name__}"
            )
        inner = data.get("data")
        if isinstance(inner, dict):
            data = inner
        app_id = data.get("id")
        name = data.get("name")
        return RemoteApp(
            id=app_id if isinstance(app_id, str) else "",
            name=name if isinstance(name, str) else "",
            updated_at=data.get("updated_at"),
        )

    def login(self, email: str | None = None, password: str | None = None) -> str:
        """
        Authenticate with email and password and store the access token.

        Returns the access token.
        """
        response = self._request(
            "POST",
            "/login",
            auth=False,
            json={
                "email": email or self.config.email,
                "password": password or self.config.password,
            },
        )
        payload = self._json(response)
        token = None
        if isinstance(payload, dict):
            data = payload.get("data")
            if isinstance(data, dict):
                token = data.get("access_token")
        if not token:
            raise DifyAPIError("login response did not contain an access token")
        self._token = token
        logger.debug("Logged in to %s", self.base_url)
        return token

    def get_app_info(self, app_id: str) -> RemoteApp:
        """
        Fetch id, name and updated_at for one application.
        """
        response = self._request("GET", f"/apps/{app_id}")
        logger.debug("App info response for %s: %s", app_id, response.text)
        return self._parse_app(self._json(response))

    def app_exists(self, app_id: str) -> bool:
        """
        Return False when the app is gone (404), True when it exists.
        """
        response = self._request(
            "GET", f"/apps/{app_id}", allow_status=(404,)
        )
        return response.status_code != 404

    def list_apps(self) -> list[RemoteApp]:
        """
        Fetch all applications, following pagination.
        """
        apps: list[RemoteApp] = []
        page = 1
        while True:
            response = self._request(
                "GET",
                "/apps",
                params={"page": page, "limit": APP_LIST_PAGE_SIZE},
            )
            payload = self._json(response)
            if not isinstance(payload, dict) or "data" not in payload:
                raise DifyAPIError(
                    "API response does not contain 'data' field"
                )
            items = payload["data"]
            if not isinstance(items, list):
                raise DifyAPIError("API response 'data' is not an array")

            apps.extend(
                self._parse_app(item) for item in items if isinstance(item, dict)
            )

            if not payload.get("has_more") or not items:
                break
            page += 1

        logger.debug("Parsed %d apps from app list", len(apps))
        return apps

    def export_dsl(self, app_id: str) -> bytes:
        """
        Export the DSL (YAML) of an application, secrets excluded.
        """
        response = self._request(
            "GET",
            f"/apps/{app_id}/export",
            params={"include_secret": "false"},
        )
        payload = self._json(response)
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, str):
            raise DifyAPIError(
                f"export response for {app_id} does not contain DSL data"
            )
        return data.encode("utf-8")

    def import_dsl(self, app_id: str, dsl: bytes) -> None:
        """
        Overwrite an existing application with the given DSL.
        """
        try:
            yaml_content = dsl.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DifyAPIError(
                f"DSL for {app_id} is not valid UTF-8: {exc}"
            ) from exc

        response = self._request(
            "POST",
            "/apps/imports",
            json={
                "mode": "yaml-content",
                "yaml_content": yaml_content,
                "app_id": app_id,
            },
            allow_status=(201, 202),
        )
        payload = self._json(response)
        status = payload.get("status") if isinstance(payload, dict) else None
        if status == "failed":
            raise DifyAPIError(
                f"DSL import for {app_id} failed: {payload.get('error', '')}"
            )
