"""
Enrichment stage: fetch real repository metadata and the manifest text in
batched GraphQL queries, and keep only repos whose manifest really declares
the package.

Code search star counts are often zero and it never reports archived
status, so filtering on those happens after this stage.
"""

import asyncio
import json
import logging
import re
from dataclasses import replace
from typing import Optional

from ecosystems.strategy import EcosystemStrategy
from shared.errors import UpstreamError
from shared.logging_utils import PipelineTrace

from .github_client import GitHubClient
from .limits import PipelineLimits
from .rate_limit import is_rate_limited, with_rate_limit_retry
from .types import DependentRepo, EnrichResult

logger = logging.getLogger(__name__)

_UNSAFE_LOGIN_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


def build_batch_query(repos: list[DependentRepo], manifest_filename: str) -> str:
    """One aliased repository() lookup per repo, manifest text included."""
    fragments = []
    for i, repo in enumerate(repos):
        owner = _UNSAFE_LOGIN_CHARS.sub("", repo.owner)
        name = _UNSAFE_LOGIN_CHARS.sub("", repo.name)
        expression = json.dumps(f"HEAD:{repo.manifest_path or manifest_filename}")
        fragments.append(
            f'repo_{i}: repository(owner: "{owner}", name: "{name}") {{\n'
            f"  stargazerCount\n"
            f"  isArchived\n"
            f"  isFork\n"
            f"  pushedAt\n"
            f"  owner {{ avatarUrl }}\n"
            f"  manifest: object(expression: {expression}) {{ ... on Blob {{ text }} }}\n"
            f"}}"
        )
    return "{\n" + "\n".join(fragments) + "\n}"


def _apply_result(
    repo: DependentRepo,
    result: Optional[dict],
    strategy: EcosystemStrategy,
    package_name: str,
) -> Optional[DependentRepo]:
    """Merge one GraphQL node into repo, or None if it should be dropped."""
    if result is None:
        return None

    manifest = result.get("manifest") or {}
    text = manifest.get("text")
    if not isinstance(text, str):
        return None

    dependency = strategy.is_dependency(text, package_name)
    if not dependency.found:
        return None

    return replace(
        repo,
        stars=result.get("stargazerCount") or 0,
        last_push=result.get("pushedAt") or "",
        avatar_url=(result.get("owner") or {}).get("avatarUrl", repo.avatar_url),
        is_fork=bool(result.get("isFork")),
        archived=bool(result.get("isArchived")),
        version=dependency.version,
        dep_type=dependency.dep_type,
    )


async def _enrich_batch(
    client: GitHubClient,
    batch: list[DependentRepo],
    strategy: EcosystemStrategy,
    package_name: str,
    label: str,
    trace: Optional[PipelineTrace],
) -> list[DependentRepo]:
    query = build_batch_query(batch, strategy.manifest_filename)
    data = await with_rate_limit_retry(lambda: client.graphql(query), label=label, trace=trace)

    enriched = []
    for i, repo in enumerate(batch):
        merged = _apply_result(repo, data.get(f"repo_{i}"), strategy, package_name)
        if merged is not None:
            enriched.append(merged)
    return enriched


async def enrich_repos(
    strategy: EcosystemStrategy,
    repos: list[DependentRepo],
    package_name: str,
    limits: PipelineLimits,
    client: Optional[GitHubClient] = None,
    trace: Optional[PipelineTrace] = None,
) -> EnrichResult:
    """
    Enrich repos in batches of limits.batch_size, limits.concurrency at a time.

    Each wave of concurrent batches is settled before deciding anything: a
    hard error anywhere in the wave propagates, otherwise a rate limit in
    the wave ends the stage with what was enriched so far.
    """
    if not repos:
        return EnrichResult()

    client = client or GitHubClient()
    batches = [
        repos[i:i + limits.batch_size] for i in range(0, len(repos), limits.batch_size)
    ]
    wave_size = max(1, limits.concurrency)
    enriched: list[DependentRepo] = []

    for wave_start in range(0, len(batches), wave_size):
        wave = batches[wave_start:wave_start + wave_size]
        results = await asyncio.gather(
            *(
                _enrich_batch(
                    client, batch, strategy, package_name,
                    f"enrich batch {wave_start + i + 1}", trace,
                )
                for i, batch in enumerate(wave)
            ),
            return_exceptions=True,
        )

        # Hard failures first, so a rate limit in the same wave cannot hide one
        for result in results:
            if isinstance(result, BaseException) and not (
                isinstance(result, UpstreamError) and is_rate_limited(result)
            ):
                raise result

        rate_limited = False
        for result in results:
            if isinstance(result, BaseException):
                rate_limited = True
            else:
                enriched.extend(result)

        if rate_limited:
            logger.warning(
                f"Enrichment for {strategy.platform}/{package_name} rate limited, "
                f"returning {len(enriched)} repos"
            )
            if trace:
                trace.log("enrich", f"rate limited after {len(enriched)} results")
            return EnrichResult(repos=enriched, rate_limited=True)

    if trace:
        dropped = len(repos) - len(enriched)
        trace.log(
            "enrich",
            f"{len(repos)} → {len(enriched)} ({len(batches)} batches, {dropped} dropped)",
        )
    return EnrichResult(repos=enriched)
