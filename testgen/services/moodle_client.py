"""
Client for the Moodle REST web services (``/webservice/rest/server.php``).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from testgen.config import settings
from testgen.exceptions import MoodleAPIError, MoodleNotConfiguredError

logger = logging.getLogger(__name__)

REST_PATH = "/webservice/rest/server.php"


@dataclass
class UploadQuizResponse:
    quiz_id: str
    course_id: str
    success: bool
    message: str = ""


@dataclass
class MoodleCourse:
    id: int
    short_name: str
    full_name: str
    category_id: int


class MoodleClient:
    """Thin async wrapper around the Moodle web-service functions testgen uses."""

    def __init__(
        self,
        base_url: str,
        token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> None:
        if not base_url or not token:
            raise MoodleNotConfiguredError()
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = httpx.Timeout(timeout or settings.MOODLE_TIMEOUT)
        self._http_client = http_client

    @classmethod
    def from_settings(cls, http_client: Optional[httpx.AsyncClient] = None) -> "MoodleClient":
        return cls(settings.MOODLE_URL, settings.MOODLE_TOKEN, http_client=http_client)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{REST_PATH}"

    async def upload_quiz(
        self,
        course_name: str,
        quiz_name: str,
        xml_content: str,
    ) -> UploadQuizResponse:
        """Upload a Moodle XML quiz file as a course import."""
        data = {
            **self._base_params("core_course_import_course"),
            "coursename": course_name,
            "quizname": quiz_name,
        }
        files = {"file": ("quiz.xml", xml_content.encode("utf-8"), "application/xml")}

        body = await self._request("POST", data=data, files=files)
        if not isinstance(body, dict):
            raise MoodleAPIError(200, "unexpected upload response")

        logger.info("Uploaded quiz %r to course %r", quiz_name, course_name)
        return UploadQuizResponse(
            quiz_id=str(body.get("quiz_id", "")),
            course_id=str(body.get("course_id", "")),
            success=bool(body.get("success", False)),
            message=str(body.get("message", "")),
        )

    async def get_courses(self) -> List[MoodleCourse]:
        body = await self._request("GET", params=self._base_params("core_course_get_courses"))
        if not isinstance(body, list):
            raise MoodleAPIError(200, "unexpected course list response")
        return [
            MoodleCourse(
                id=int(c.get("id", 0)),
                short_name=str(c.get("shortname", "")),
                full_name=str(c.get("fullname", "")),
                category_id=int(c.get("categoryid", 0)),
            )
            for c in body
            if isinstance(c, dict)
        ]

    async def validate_connection(self) -> Dict[str, Any]:
        """Return the site info; raises if the token or URL is rejected."""
        body = await self._request(
            "GET", params=self._base_params("core_webservice_get_site_info")
        )
        if not isinstance(body, dict):
            raise MoodleAPIError(200, "unexpected site info response")
        return body

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _base_params(self, function: str) -> Dict[str, str]:
        return {
            "wstoken": self._token,
            "wsfunction": function,
            "moodlewsrestformat": "json",
        }

    async def _request(self, method: str, **kwargs: Any) -> Any:
        try:
            if self._http_client is not None:
                resp = await self._http_client.request(
                    method, self.endpoint, timeout=self._timeout, **kwargs
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.request(method, self.endpoint, **kwargs)
        except httpx.HTTPError as exc:
            # the token travels in the query string, so never echo the URL
            raise MoodleAPIError(None, type(exc).__name__) from exc

        if resp.status_code != 200:
            raise MoodleAPIError(resp.status_code, resp.text[:300])

        try:
            body = resp.json()
        except ValueError as exc:
            raise MoodleAPIError(resp.status_code, "response is not JSON") from exc

        # Moodle reports web-service failures with HTTP 200 and an exception payload
        if isinstance(body, dict) and "exception" in body:
            raise MoodleAPIError(
                resp.status_code,
                str(body.get("message") or body.get("errorcode") or body["exception"]),
            )
        return body
