"""Per-skill transaction statistics for the /transaction-details endpoint."""

import logging
from typing import Dict, List, Mapping, Optional

from .client import VantageClient
from .errors import VantageError
from .schemas import (
    FAILED_STATUS,
    SUCCESS_STATUS,
    Skill,
    Transaction,
    TransactionDetail,
    TransactionMetrics,
)


logger = logging.getLogger(__name__)


def parse_skill_ids(raw: Optional[str]) -> List[str]:
    """Split a ``skills`` query value such as ``{a,b}`` or ``a, b``.

    Grafana wraps multi-value variables in braces; those are stripped.
    Empty entries are dropped.
    """
    if not raw:
        return []
    ids = (part.strip() for part in raw.strip().strip("{}").split(","))
    return [skill_id for skill_id in ids if skill_id]


def fetch_details(
    client: VantageClient,
    skill_ids: List[str],
    completed: List[Transaction],
    limit: int,
) -> Dict[str, TransactionDetail]:
    """Fetch details for up to ``limit`` completed transactions per skill.

    A failed detail fetch is logged and left out of the result.
    """
    details: Dict[str, TransactionDetail] = {}
    if limit <= 0:
        return details

    for skill_id in skill_ids:
        candidates = [tx for tx in completed if tx.skill_id == skill_id][:limit]
        for tx in candidates:
            if tx.id in details:
                continue
            try:
                details[tx.id] = client.get_transaction_detail(tx.id)
            except VantageError as e:
                logger.warning(f"Error getting details for transaction {tx.id}: {e}")
    return details


def _skill_metrics(
    skill_id: str,
    skill_name: str,
    active: List[Transaction],
    completed: List[Transaction],
    details: Mapping[str, TransactionDetail],
) -> TransactionMetrics:
    metrics = TransactionMetrics(skill_id=skill_id, skill_name=skill_name)
    total_pages = 0
    total_docs = 0

    for tx in active:
        if tx.skill_id != skill_id:
            continue

        metrics.total_transactions += 1
        total_pages += tx.page_count
        total_docs += tx.document_count

        for stage_key in (tx.stage.name, tx.stage.type):
            if stage_key:
                metrics.stage_breakdown[stage_key] = (
                    metrics.stage_breakdown.get(stage_key, 0) + 1
                )

        if tx.in_manual_review:
            metrics.active_manual_review += 1
        else:
            metrics.active_processing += 1

    for tx in completed:
        if tx.skill_id != skill_id:
            continue

        metrics.total_transactions += 1
        total_pages += tx.page_count
        total_docs += tx.document_count

        metrics.status_breakdown[tx.status] = (
            metrics.status_breakdown.get(tx.status, 0) + 1
        )
        if tx.status == SUCCESS_STATUS:
            metrics.completed_success += 1
        elif tx.status == FAILED_STATUS:
            metrics.completed_failed += 1

        detail = details.get(tx.id)
        if detail is None:
            continue
        for document in detail.documents:
            metrics.business_rules_errors_total += len(document.business_rules_errors)
            for result_file in document.result_files:
                metrics.file_type_breakdown[result_file.type] = (
                    metrics.file_type_breakdown.get(result_file.type, 0) + 1
                )

    if metrics.total_transactions > 0:
        metrics.avg_pages_per_transaction = total_pages / metrics.total_transactions
        metrics.avg_documents_per_transaction = (
            total_docs / metrics.total_transactions
        )

    return metrics


def build_transaction_metrics(
    skill_ids: List[str],
    skills: List[Skill],
    active: List[Transaction],
    completed: List[Transaction],
    details: Optional[Mapping[str, TransactionDetail]] = None,
) -> List[TransactionMetrics]:
    """One TransactionMetrics per requested skill id, in request order."""
    skill_names = {skill.id: skill.name for skill in skills}
    details = details or {}

    results = []
    for skill_id in skill_ids:
        if not skill_id:
            continue
        skill_name = skill_names.get(skill_id) or skill_id
        metrics = _skill_metrics(skill_id, skill_name, active, completed, details)
        logger.info(
            f"Processed skill {skill_id} ({skill_name}): "
            f"{metrics.total_transactions} total transactions"
        )
        results.append(metrics)
    return results
