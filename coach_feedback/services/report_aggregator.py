"""
Aggregation of feedback records into per-train report sheets and totals.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.feedback_data import FeedbackRecord, ReportSheet, SheetTotals


class AggregationError(Exception):
    """Raised when records cannot form a single report sheet."""
    pass


class ReportAggregator:
    """
    Groups records by (train number, report date) and computes sheet totals.

    The summary figures reproduce the report format in use: the PSI
    percentage is the PSI sum divided by the feedback count, and the
    "average PSI" label carries the PSI sum itself. Both are formatted to two
    decimals, or "0" for an empty sheet.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize report aggregator.

        Args:
            logger: Logger instance (optional, creates default if not provided)
        """
        self.logger = logger or logging.getLogger(__name__)

    def compute_totals(self, records: Sequence[FeedbackRecord]) -> SheetTotals:
        """
        Compute totals for a sequence of records.

        Args:
            records: Records of one sheet, in display order

        Returns:
            SheetTotals
        """
        count = len(records)
        ns1_total = sum(r.ns1 or 0 for r in records)
        ns2_total = sum(r.ns2 or 0 for r in records)
        ns3_total = sum(r.ns3 or 0 for r in records)
        psi_total = sum(r.psi or 0 for r in records)

        if count > 0:
            percentage_at_psi = f"{psi_total / count:.2f}"
            average_psi = f"{psi_total:.2f}"
        else:
            percentage_at_psi = "0"
            average_psi = "0"

        return SheetTotals(
            count=count,
            ns1_total=ns1_total,
            ns2_total=ns2_total,
            ns3_total=ns3_total,
            psi_total=psi_total,
            percentage_at_psi=percentage_at_psi,
            average_psi=average_psi,
        )

    def build_sheet(self, records: Sequence[FeedbackRecord]) -> ReportSheet:
        """
        Build a report sheet from records sharing one train and report date.

        Args:
            records: Non-empty records with a common (train_no, report_date)

        Returns:
            ReportSheet holding the records in their given order

        Raises:
            AggregationError: If records is empty or mixes sheet keys
        """
        if not records:
            raise AggregationError("Cannot build a report sheet from no records")

        keys = {r.sheet_key for r in records}
        if len(keys) > 1:
            described = ', '.join(f"{train} @ {day}" for train, day in sorted(keys, key=str))
            raise AggregationError(f"Records span more than one train/report date: {described}")

        train_no, report_date = records[0].sheet_key
        train_name = next((r.train_name for r in records if r.train_name), '')
        return ReportSheet(
            train_no=train_no,
            train_name=train_name,
            report_date=report_date,
            records=list(records),
        )

    def aggregate(self, records: Sequence[FeedbackRecord]) -> Tuple[ReportSheet, SheetTotals]:
        """Build the sheet for one train/date and its totals."""
        sheet = self.build_sheet(records)
        return sheet, self.compute_totals(sheet.records)

    def group_into_sheets(self, records: Iterable[FeedbackRecord]) -> List[ReportSheet]:
        """
        Group records into sheets by (train_no, report_date).

        Sheets appear in order of their first record and records keep their
        relative order; nothing is re-sorted.
        """
        groups: Dict[tuple, List[FeedbackRecord]] = {}
        for record in records:
            groups.setdefault(record.sheet_key, []).append(record)

        sheets = [self.build_sheet(group) for group in groups.values()]
        self.logger.debug(f"Grouped records into {len(sheets)} report sheets")
        return sheets

    def summarize(self, sheets: Iterable[ReportSheet]) -> List[dict]:
        """
        Sheet metadata plus totals, shaped for JSON responses.
        """
        summaries = []
        for sheet in sheets:
            summary = sheet.to_dict()
            summary['totals'] = self.compute_totals(sheet.records).to_dict()
            summaries.append(summary)
        return summaries
