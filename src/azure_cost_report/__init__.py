"""
Azure Cost Report

Serverless endpoint that aggregates Azure Cost Management and Resource Graph
data into a summarized and itemized cost report.
"""

__version__ = "1.0.0"
__author__ = "Cost Monitor Team"
