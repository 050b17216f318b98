"""
Wi-Fi Positioning System (WPS) Core Package.

Estimates a device position from observed access-point signal strengths,
a registry of known access-point coordinates and a log-distance path-loss
model.

Package structure:
- io: Audit log records and CSV writer
- proto: Message schemas (observations, position estimates, results)
- localization: Signal model, geodetic projection, multilateration, strategy
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"
__author__ = "WPS Team"
