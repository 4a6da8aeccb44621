"""Orchestrates drift detection across resource groups concurrently."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from bicepdrift.azure.client import WhatIfClient, WhatIfError
from bicepdrift.ignore import IgnoreRuleSet, filter_drifts
from bicepdrift.models import DetectionReport, DetectionRun
from bicepdrift.normalizer import parse_what_if

logger = logging.getLogger(__name__)


class Detector:
    """Runs what-if, normalizes the delta tree and filters ignored drift."""

    def __init__(
        self,
        client: WhatIfClient,
        rules: IgnoreRuleSet | None = None,
        audit: bool = False,
        max_concurrent: int = 5,
    ):
        self._client = client
        self._rules = rules or IgnoreRuleSet()
        self._audit = audit
        self._max_concurrent = max_concurrent

    def analyze(
        self,
        what_if_output: str | dict[str, Any],
        resource_group: str = "",
        template_file: str | Path = "",
    ) -> DetectionRun:
        """Normalize and filter already-fetched what-if output."""
        unfiltered = parse_what_if(what_if_output)
        outcome = filter_drifts(unfiltered, self._rules, audit=self._audit)
        return DetectionRun(
            resource_group=resource_group,
            template_file=str(template_file),
            result=outcome.result,
            rule_usage=outcome.usage,
        )

    def detect(self, template_file: str | Path, resource_groups: list[str]) -> DetectionReport:
        """Check ``template_file`` against every resource group and collect the runs."""
        if not resource_groups:
            return DetectionReport(runs=[], failed_resource_groups=[])

        runs: list[DetectionRun] = []
        failed: list[str] = []

        with ThreadPoolExecutor(max_workers=self._max_concurrent) as executor:
            futures = {
                executor.submit(self._detect_group, template_file, rg): rg for rg in resource_groups
            }
            for future in as_completed(futures):
                resource_group = futures[future]
                try:
                    runs.append(future.result())
                except WhatIfError as e:
                    logger.warning("Drift detection failed for %s: %s", resource_group, e)
                    failed.append(resource_group)
                except Exception:
                    logger.exception("Failed to detect drift for %s", resource_group)
                    failed.append(resource_group)

        # as_completed yields in finish order; report in the order requested.
        order = {rg: i for i, rg in enumerate(resource_groups)}
        runs.sort(key=lambda run: order[run.resource_group])
        failed.sort(key=order.__getitem__)
        return DetectionReport(runs=runs, failed_resource_groups=failed)

    def _detect_group(self, template_file: str | Path, resource_group: str) -> DetectionRun:
        output = self._client.run_what_if(template_file, resource_group)
        return self.analyze(output, resource_group=resource_group, template_file=template_file)
