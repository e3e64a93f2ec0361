"""CloudFormation stack enumeration and template download."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from stack_audit.config import AuditConfig
from stack_audit.iac.base import ParseError
from stack_audit.iac.cloudformation import parse_template
from stack_audit.models import StackInfo, Template

logger = logging.getLogger(__name__)

DELETE_COMPLETE = "DELETE_COMPLETE"


class StackFetchError(RuntimeError):
    """Raised when stacks cannot be listed for a profile and region."""


@dataclass
class FetchResult:
    """Stacks fetched for one (profile, region) pair."""

    profile: str
    region: str
    stacks: list[StackInfo] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StackEnumerator:
    """Lists deployed stacks for one profile and region and downloads their templates."""

    def __init__(
        self,
        profile: str,
        region: str,
        config: Optional[AuditConfig] = None,
        *,
        session_factory: Callable[..., Any] = boto3.Session,
    ) -> None:
        self.profile = profile
        self.region = region
        self.config = config or AuditConfig()

        session = session_factory(profile_name=profile, region_name=region)
        self._client = session.client(
            "cloudformation",
            config=Config(
                retries={"max_attempts": self.config.sdk_max_attempts, "mode": "standard"}
            ),
        )

    @property
    def cache_dir(self) -> Path:
        """Directory holding cached template bodies for this profile and region."""
        return Path(self.config.template_output_dir) / self.region / self.profile

    def describe_stacks(self) -> list[dict]:
        """All stacks except those already deleted.

        Raises:
            StackFetchError: If the API call fails.
        """
        stacks: list[dict] = []
        try:
            paginator = self._client.get_paginator("describe_stacks")
            for page in paginator.paginate():
                stacks.extend(page.get("Stacks", []))
        except (ClientError, BotoCoreError) as e:
            raise StackFetchError(
                f"Failed to describe stacks for {self.profile}:{self.region}: {e}"
            ) from e

        return [s for s in stacks if s.get("StackStatus") != DELETE_COMPLETE]

    def get_template_body(self, stack_id: str) -> Optional[str]:
        """Download a stack's template body.

        Returns:
            The template text, or None if the stack has no template or the
            call fails.
        """
        try:
            response = self._client.get_template(StackName=stack_id)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Unable to get template for %s: %s", stack_id, e)
            return None

        body = response.get("TemplateBody")
        if not body:
            return None
        # boto3 decodes JSON template bodies into dicts
        if isinstance(body, dict):
            return json.dumps(body, indent=2, default=str)
        return str(body)

    def _cache_path(self, stack_name: str) -> Path:
        return self.cache_dir / f"{stack_name}.template"

    def _read_cache(self, stack_name: str) -> Optional[str]:
        path = self._cache_path(stack_name)
        if path.is_file():
            logger.debug("Using cached template %s", path)
            return path.read_text(encoding="utf-8")
        return None

    def _write_cache(self, stack_name: str, body: str) -> None:
        path = self._cache_path(stack_name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(body, encoding="utf-8")
        except OSError as e:
            logger.warning("Unable to cache template for %s: %s", stack_name, e)

    def load_template(self, stack: dict) -> Template:
        """Template for a stack, empty if it is unavailable or unparseable."""
        stack_id = stack.get("StackId", "")
        stack_name = stack.get("StackName", stack_id)

        body = self._read_cache(stack_name) if self.config.prefer_cache else None
        if body is None:
            body = self.get_template_body(stack_id)
            if body is not None:
                self._write_cache(stack_name, body)

        if body is None:
            return Template.empty()

        try:
            return parse_template(body, stack_name)
        except ParseError as e:
            logger.warning("%s", e)
            return Template.empty()

    def fetch_stacks(self) -> list[StackInfo]:
        """Fetch every live stack with its template.

        Raises:
            StackFetchError: If stacks cannot be listed.
        """
        stacks = self.describe_stacks()
        logger.info("Found %d stack(s) in %s:%s", len(stacks), self.profile, self.region)

        return [
            StackInfo.from_api(stack, self.profile, self.region, self.load_template(stack))
            for stack in stacks
        ]


def fetch_all(
    config: AuditConfig,
    *,
    enumerator_factory: Callable[..., StackEnumerator] = StackEnumerator,
) -> list[FetchResult]:
    """Fetch stacks for every (profile, region) pair concurrently.

    A failure for one pair is recorded on its FetchResult and does not affect
    the others. Results are returned in configuration order.
    """

    def _fetch(profile: str, region: str) -> FetchResult:
        try:
            enumerator = enumerator_factory(profile, region, config)
            return FetchResult(profile, region, stacks=enumerator.fetch_stacks())
        except StackFetchError as e:
            logger.error("%s", e)
            return FetchResult(profile, region, error=str(e))
        except (ClientError, BotoCoreError) as e:
            logger.error("AWS error for %s:%s: %s", profile, region, e)
            return FetchResult(profile, region, error=str(e))

    pairs = config.pairs()
    if not pairs:
        return []

    with ThreadPoolExecutor(max_workers=max(1, min(config.max_workers, len(pairs)))) as pool:
        futures = [pool.submit(_fetch, profile, region) for profile, region in pairs]
        return [future.result() for future in futures]
