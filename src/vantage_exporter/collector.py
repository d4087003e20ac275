"""Prometheus collector turning Vantage API data into metric families."""

import logging
import os
from collections import Counter
from typing import Dict, Iterator, List, Optional, Set, Tuple

from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from .client import VantageClient
from .errors import VantageError
from .schemas import SUCCESS_STATUS, Transaction
from .utils.timestamps import parse_timestamp


logger = logging.getLogger(__name__)

TX_LABELS = ["skill_id", "transaction_id"]


class VantageCollector(Collector):
    """Pulls skills and transactions from Vantage on every scrape.

    Each of the three listings is fetched independently; a failing source is
    logged and its families come out empty while the rest of the scrape
    proceeds. Nothing is cached between scrapes.
    """

    def __init__(self, client: VantageClient, detail_limit: Optional[int] = None):
        self.client = client
        self.detail_limit = (
            detail_limit
            if detail_limit is not None
            else int(os.getenv("VANTAGE_DETAIL_LIMIT") or 0)
        )

    def _families(self) -> Dict[str, GaugeMetricFamily]:
        return {
            "skill": GaugeMetricFamily(
                "vantage_skill_info",
                "Vantage skill information",
                labels=["skill_id", "skill_name", "skill_type"],
            ),
            "active": GaugeMetricFamily(
                "vantage_active_transaction",
                "Vantage active transaction",
                labels=["transaction_id", "skill_id"],
            ),
            "completed": GaugeMetricFamily(
                "vantage_completed_transactions",
                "Completed transactions in the current listing window by skill and status",
                labels=["skill_id", "status"],
            ),
            "skill_version": GaugeMetricFamily(
                "vantage_skill_version",
                "Skill version used for transaction",
                labels=["skill_id", "version"],
            ),
            "created": GaugeMetricFamily(
                "vantage_transaction_created_timestamp",
                "Transaction creation timestamp",
                labels=TX_LABELS,
            ),
            "pages": GaugeMetricFamily(
                "vantage_transaction_page_count",
                "Number of pages per transaction",
                labels=TX_LABELS,
            ),
            "documents": GaugeMetricFamily(
                "vantage_transaction_document_count",
                "Number of extracted documents per transaction",
                labels=TX_LABELS,
            ),
            "success": GaugeMetricFamily(
                "vantage_processing_success",
                "Transaction processing success indicator",
                labels=["skill_id", "transaction_id", "status"],
            ),
            "files": GaugeMetricFamily(
                "vantage_transaction_file_count",
                "Number of source files per transaction",
                labels=TX_LABELS,
            ),
            "rule_errors": GaugeMetricFamily(
                "vantage_transaction_business_rules_errors",
                "Business rule validation errors per transaction",
                labels=["skill_id", "transaction_id", "error_type"],
            ),
            "result_files": GaugeMetricFamily(
                "vantage_transaction_result_files",
                "Result files generated per transaction by type",
                labels=["skill_id", "transaction_id", "file_type"],
            ),
        }

    def describe(self) -> Iterator[Metric]:
        return iter(self._families().values())

    def collect(self) -> Iterator[Metric]:
        families = self._families()
        seen: Set[str] = set()

        try:
            skills = self.client.get_skills()
        except VantageError as e:
            logger.error(f"Error getting skills: {e}")
        else:
            for skill in skills:
                families["skill"].add_metric([skill.id, skill.name, skill.type], 1)

        try:
            active = self.client.get_active_transactions()
        except VantageError as e:
            logger.error(f"Error getting active transactions: {e}")
        else:
            for tx in active:
                families["active"].add_metric([tx.id, tx.skill_id], 1)
                self._add_transaction(families, tx, seen)

        try:
            completed = self.client.get_completed_transactions()
        except VantageError as e:
            logger.error(f"Error getting completed transactions: {e}")
        else:
            self._add_completed(families, completed, seen)
            self._add_details(families, completed)

        return iter(families.values())

    def _add_transaction(
        self, families: Dict[str, GaugeMetricFamily], tx: Transaction, seen: Set[str]
    ) -> None:
        """Emit the per-transaction samples once per transaction id."""
        if tx.id in seen:
            return
        seen.add(tx.id)

        labels = [tx.skill_id, tx.id]
        created = parse_timestamp(tx.create_time_utc)
        if created is not None:
            families["created"].add_metric(labels, created.timestamp())
        else:
            logger.debug(
                f"Unparseable createTimeUtc {tx.create_time_utc!r} for transaction {tx.id}"
            )
        families["pages"].add_metric(labels, tx.page_count)
        families["documents"].add_metric(labels, tx.document_count)

    def _add_completed(
        self,
        families: Dict[str, GaugeMetricFamily],
        completed: List[Transaction],
        seen: Set[str],
    ) -> None:
        status_counts: Counter = Counter()
        versions_seen: Set[Tuple[str, int]] = set()
        success_seen: Set[str] = set()

        for tx in completed:
            status_counts[(tx.skill_id, tx.status)] += 1

            version_key = (tx.skill_id, tx.skill_version)
            if version_key not in versions_seen:
                versions_seen.add(version_key)
                families["skill_version"].add_metric(
                    [tx.skill_id, str(tx.skill_version)], 1
                )

            self._add_transaction(families, tx, seen)

            # active and completed listings can overlap
            if tx.id not in success_seen:
                success_seen.add(tx.id)
                families["success"].add_metric(
                    [tx.skill_id, tx.id, tx.status],
                    1 if tx.status == SUCCESS_STATUS else 0,
                )

        for (skill_id, status), count in status_counts.items():
            families["completed"].add_metric([skill_id, status], count)

    def _add_details(
        self, families: Dict[str, GaugeMetricFamily], completed: List[Transaction]
    ) -> None:
        if self.detail_limit <= 0:
            return

        for tx in completed[: self.detail_limit]:
            try:
                detail = self.client.get_transaction_detail(tx.id)
            except VantageError as e:
                logger.warning(f"Error getting details for transaction {tx.id}: {e}")
                continue

            labels = [tx.skill_id, tx.id]
            families["files"].add_metric(labels, len(detail.source_files))

            error_types: Counter = Counter()
            file_types: Counter = Counter()
            for document in detail.documents:
                error_types.update(err.type for err in document.business_rules_errors)
                file_types.update(f.type for f in document.result_files)

            for error_type, count in error_types.items():
                families["rule_errors"].add_metric(labels + [error_type], count)
            for file_type, count in file_types.items():
                families["result_files"].add_metric(labels + [file_type], count)
