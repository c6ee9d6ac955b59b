"""
Internal Assessments

Questions and answers, scoring, assignment sets, the submission lifecycle,
release/recall and result aggregation.
"""
