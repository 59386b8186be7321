"""
Attendance Guard — trust evaluation for location-bound attendance check-in.

Decides whether a mobile client's claimed location and runtime environment
can be trusted: integrity signals are folded into a security score, location
samples are checked for authenticity, and violations are escalated into
blocking decisions. Modular architecture with clear separation between the
analysis engine, violation escalation, monitoring scheduler and the
collaborator adapters that feed them.
"""

__version__ = "0.1.0"
