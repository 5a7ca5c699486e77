"""
Coach Feedback Manager

Data-entry and retrieval for rail-coach passenger feedback: spreadsheet
ingestion and validation, bulk submission to the feedback service, and
consolidated PDF reporting.
"""

__version__ = "1.0.0"
__author__ = "Passenger Services Team"
