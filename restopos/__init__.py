"""
                Restaurant QR Point-of-Sale

Table QR ordering with realtime cashier and kitchen screens.

Author: Khalil_Bannouri
Version: 4.0.0
License: MIT
"""

__version__ = "4.0.0"
__author__ = "Khalil_Bannouri"
