"""
Quiz Grader - automatic grading for quiz attempts.

This package grades multiple-choice answers by normalized exact match and
descriptive answers with an LLM, falling back to word-overlap similarity
when the LLM is unavailable. Every submission is graded to completion.
"""

__version__ = "1.0.0"
__author__ = "Quiz Grader Team"
