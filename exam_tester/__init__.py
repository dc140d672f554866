"""Exam Tester API: timed exam attempts, answer submissions and exam file storage."""

__version__ = "1.0.0"
