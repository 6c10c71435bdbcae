"""
firewalld reconciler - declarative management of firewalld ports,
services and rich rules.

Checks the live configuration through firewall-cmd before changing it, so
repeated runs are no-ops and report changed=false.
"""

__version__ = "1.0.0"
__author__ = "Server Management Team"
