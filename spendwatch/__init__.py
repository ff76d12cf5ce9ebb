"""
SpendWatch DZD - Media Buying Spend Tracker.

Tracks daily advertising spend and leads per ad source, normalises spend
between USD and DZD, compares monthly spend against budgets and raises
budget alerts.

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "SpendWatch Team"
