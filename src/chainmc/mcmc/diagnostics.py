"""
Chain Diagnostics.

Operator-level reporting for a finished (or paused) chain:
- operator_summaries: Per-operator tallies as plain dicts
- print_acceptance_summary: Acceptance rate statistics with low-rate warning
- format_operator_analysis: Fixed-width per-operator table
"""

from typing import Any, Dict, List

import numpy as np

import logging
logger = logging.getLogger('chainmc')


# Operators accepting less often than this are flagged
LOW_ACCEPTANCE_RATE = 0.10


def operator_summaries(schedule) -> List[Dict[str, Any]]:
    """
    Collect the tally of every operator in the schedule.

    Returns:
        List of dicts with name, accept_count, reject_count, acceptance_rate,
        mean_deviation, mean_time_ms and, for coercable operators,
        coercable_parameter / tuning.
    """
    summaries = []
    for i in range(schedule.operator_count):
        op = schedule.get_operator(i)
        summary = {
            'name': op.operator_name,
            'accept_count': op.accept_count,
            'reject_count': op.reject_count,
            'acceptance_rate': op.acceptance_probability,
            'mean_deviation': op.mean_deviation,
            'mean_time_ms': op.mean_evaluation_time,
            'coercable_parameter': None,
            'tuning': None,
        }
        if op.is_coercable:
            summary['coercable_parameter'] = op.get_coercable_parameter()
            summary['tuning'] = op.raw_parameter
        summaries.append(summary)
    return summaries


def print_acceptance_summary(schedule) -> None:
    """
    Log summary statistics for operator acceptance rates.

    Guaranteed-accept operators are excluded, their rate is 100% by
    construction.

    Args:
        schedule: Operator schedule of the chain
    """
    rates = []
    labels = []
    for i in range(schedule.operator_count):
        op = schedule.get_operator(i)
        if op.is_guaranteed_accept or op.operation_count == 0:
            continue
        rates.append(op.acceptance_probability)
        labels.append(op.operator_name)

    if not rates:
        return

    rates = np.array(rates)
    logger.info(f"\n--- MH Acceptance Rates ({len(rates)} operators) ---")
    logger.info(f"  Mean: {np.mean(rates):.1%}  Median: {np.median(rates):.1%}  "
                f"Min: {np.min(rates):.1%}  Max: {np.max(rates):.1%}")

    low_rate_mask = rates < LOW_ACCEPTANCE_RATE
    if np.any(low_rate_mask):
        low_count = int(np.sum(low_rate_mask))
        low_labels = [lbl for lbl, is_low in zip(labels, low_rate_mask) if is_low]
        logger.warning(f"  WARNING: {low_count} operator(s) have acceptance rate < 10%")
        if low_count <= 10:
            logger.warning(f"    Low operators: {', '.join(low_labels)}")


def format_operator_analysis(schedule) -> str:
    """
    Render a per-operator table: name, tuning, accepts, rejects, time/op, Pr(accept).
    """
    summaries = operator_summaries(schedule)
    name_width = max([len('Operator')] + [len(s['name']) for s in summaries])

    header = (f"{'Operator':<{name_width}}  {'Tuning':>10}  {'Accepts':>9}  "
              f"{'Rejects':>9}  {'Time/Op':>9}  {'Pr(accept)':>10}")
    lines = [header, '-' * len(header)]
    for s in summaries:
        tuning = f"{s['tuning']:.4g}" if s['tuning'] is not None else '-'
        lines.append(
            f"{s['name']:<{name_width}}  {tuning:>10}  {s['accept_count']:>9d}  "
            f"{s['reject_count']:>9d}  {s['mean_time_ms']:>7.3f}ms  {s['acceptance_rate']:>10.4f}"
        )
    return "\n".join(lines)
