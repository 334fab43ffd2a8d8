"""
Unit tests for extraction failure grouping.
"""

import unittest

from field_provenance.core.extraction_failures import (
    FailureCategory,
    categorize_reason,
    failure_summary,
    group_failures,
    parse_skipped_forms,
)

SKIPPED = [
    {"pageNumber": 4, "reason": "Page appears blank"},
    {"pageNumber": 5, "reason": "Image too blurry to read", "suggestions": ["Rescan at 300 DPI"]},
    {"pageNumber": 6, "reason": "Unrecognized form layout", "formType": "Unknown"},
    {"pageNumber": 7, "reason": "Empty page"},
    {"pageNumber": 8, "reason": "Timeout"},
]


class TestExtractionFailures(unittest.TestCase):

    def test_categorize_reason(self):
        self.assertEqual(categorize_reason("Blank page"), FailureCategory.BLANK)
        self.assertEqual(categorize_reason("Poor scan QUALITY"), FailureCategory.QUALITY)
        self.assertEqual(categorize_reason("Unsupported form type"), FailureCategory.UNSUPPORTED)
        self.assertEqual(categorize_reason("Partially obscured"), FailureCategory.PARTIAL)
        self.assertEqual(categorize_reason("Service error"), FailureCategory.OTHER)

    def test_parse_skips_malformed_entries(self):
        skipped = parse_skipped_forms(SKIPPED + ["bad", {"reason": "no page"}, {"pageNumber": 0}])

        self.assertEqual([s.page_number for s in skipped], [4, 5, 6, 7, 8])
        self.assertEqual(skipped[1].suggestions, ("Rescan at 300 DPI",))
        self.assertEqual(skipped[2].form_type, "Unknown")

    def test_group_failures(self):
        groups = group_failures(parse_skipped_forms(SKIPPED))

        self.assertEqual([s.page_number for s in groups[FailureCategory.BLANK]], [4, 7])
        self.assertEqual(list(groups), [
            FailureCategory.BLANK,
            FailureCategory.QUALITY,
            FailureCategory.UNSUPPORTED,
            FailureCategory.OTHER,
        ])

    def test_summary(self):
        summary = failure_summary(parse_skipped_forms(SKIPPED))

        self.assertEqual(summary["total"], 5)
        self.assertEqual(summary["heading"], "5 Pages Could Not Be Extracted")
        self.assertEqual(summary["categories"][0]["label"], "Blank/Empty Page")
        self.assertEqual(failure_summary(parse_skipped_forms(SKIPPED[:1]))["heading"],
                         "1 Page Could Not Be Extracted")


if __name__ == '__main__':
    unittest.main()
