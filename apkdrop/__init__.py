"""
APKdrop: Android App Bundle conversion and per-device APK delivery.

Converts uploaded App Bundles into universal APK sets, then extracts and
publishes the single APK that best matches a caller's device.
"""

__version__ = "1.0.0"
__author__ = "APKdrop Team"
