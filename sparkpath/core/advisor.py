from dataclasses import dataclass, field
from typing import Any

import requests
from loguru import logger

from sparkpath.utils.env_cfg import load_advisor_env, load_host_env


class AdvisorError(RuntimeError):
    """
    Raised when the AI advisor service cannot produce a usable response.
    """


@dataclass
class AdvisorClient:
    """
    HTTP client for the AI advisor service that generates all advisory content.

    Every call is a blocking JSON POST; callers on the event loop should run the
    methods in a worker thread.
    """

    base_url: str | None = None
    timeout: float | None = None
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    def __post_init__(self) -> None:
        if self.base_url is None:
            self.base_url = load_host_env().advisor_host
        self.base_url = self.base_url.rstrip("/")
        if self.timeout is None:
            self.timeout = load_advisor_env().request_timeout

    def is_alive(self) -> bool:
        """
        Perform a liveness check against the advisor's ``/api`` endpoint.

        Returns:
            bool: True if the advisor responded with a success status, False otherwise.
        """
        try:
            response = self.session.get(f"{self.base_url}/api", timeout=5)
        except requests.RequestException as e:
            logger.debug("Advisor liveness check failed: {}", e)
            return False
        return response.ok

    def _post(self, path: str, payload: dict[str, Any]) -> Any:
        """
        POST a JSON payload to the advisor and return the decoded response body.

        Args:
            path (str): Endpoint path below the base URL.
            payload (dict[str, Any]): JSON body.

        Returns:
            Any: The decoded JSON response.

        Raises:
            AdvisorError: If the request fails, returns an error status or a non-JSON body.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("AdvisorError: Request to {} failed: {}", url, e)
            raise AdvisorError(f"Advisor request to {path} failed: {e}") from e

        if not response.ok:
            logger.error(
                "AdvisorError: {} answered with status {}", url, response.status_code
            )
            raise AdvisorError(
                f"Advisor returned status {response.status_code} for {path}: "
                f"{response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error("AdvisorError: Non-JSON response from {}", url)
            raise AdvisorError(f"Advisor returned a non-JSON response for {path}") from e

    def generate_roadmap(self, form_data: Any) -> Any:
        return self._post("/api/roadmap", {"formData": form_data})

    def task_guidance(self, task_title: str, form_data: Any) -> Any:
        return self._post(
            "/api/task-guidance", {"taskTitle": task_title, "formData": form_data}
        )

    def failure_prediction(
        self,
        industry: Any,
        budget: Any,
        team_size: Any,
        market_size: Any,
        country: Any,
    ) -> Any:
        """
        Request a failure-likelihood prediction for a startup profile.

        Args:
            industry (Any): The startup's industry.
            budget (Any): Available budget.
            team_size (Any): Number of team members.
            market_size (Any): Estimated market size.
            country (Any): Country of operation.

        Returns:
            Any: The prediction payload as returned by the advisor.
        """
        return self._post(
            "/api/failure-prediction",
            {
                "industry": industry,
                "budget": budget,
                "teamSize": team_size,
                "marketSize": market_size,
                "country": country,
            },
        )

    def swot_analysis(self, startup_data: Any) -> Any:
        return self._post("/api/swot-analysis", {"startupData": startup_data})

    def legal_checklist(self, profile: dict[str, Any]) -> Any:
        """
        Request the legal and compliance checklist for a startup profile.

        Args:
            profile (dict[str, Any]): Country, region and optional profile fields.

        Returns:
            Any: The checklist items as returned by the advisor.
        """
        return self._post("/api/checklist", profile)

    def checklist_item_details(self, item_id: str, profile: dict[str, Any]) -> Any:
        """
        Request compliance details for a single checklist item.

        Args:
            item_id (str): The checklist item identifier.
            profile (dict[str, Any]): Country, region and optional profile fields.

        Returns:
            Any: The compliance details as returned by the advisor.
        """
        return self._post("/api/checklist/details", {"itemId": item_id, **profile})

    def mentor_reply(
        self,
        message: str,
        history: list[dict[str, Any]],
        form_data: Any = None,
    ) -> Any:
        """
        Ask the mentor model for a reply given the conversation so far.

        Args:
            message (str): The new user message.
            history (list[dict[str, Any]]): Prior turns, oldest first.
            form_data (Any, optional): Startup profile snapshot.

        Returns:
            Any: The mentor reply payload as returned by the advisor.
        """
        return self._post(
            "/api/mentor",
            {"message": message, "history": history, "formData": form_data},
        )
