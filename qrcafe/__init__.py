"""
                QR Cafe Ordering System

Table-side ordering backend: customers scan a table code, browse the
menu and submit orders; staff follow and advance them on a live board.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
